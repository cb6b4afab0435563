"""Schema validation for warpack inputs."""

from typing import Any

from jsonschema.validators import Draft202012Validator

from warpack.utils.schema_registry import get_registry


def validate_data(data: dict[str, Any], schema_name: str) -> None:
    """Validate a mapping against a packaged schema.

    Raises:
        KeyError: If the schema is not packaged
        ValueError: Listing every violation, sorted by path
    """
    validator = Draft202012Validator(get_registry().get_json(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if not errors:
        return

    messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]
    raise ValueError(
        f"{schema_name} is invalid:\n" + "\n".join(f"  - {message}" for message in messages)
    )
