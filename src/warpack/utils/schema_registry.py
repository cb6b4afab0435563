"""Schema registry backed by the ``warpack_schemas`` package data.

Schemas load through ``importlib.resources`` so lookups do not depend on the
current working directory.
"""

import json
from dataclasses import dataclass
from importlib.resources import files
from typing import Any

SCHEMA_PACKAGE = "warpack_schemas"
SCHEMA_SUFFIX = ".schema.json"


@dataclass(frozen=True)
class SchemaRegistry:
    """Registry of available schemas from package data.

    Attributes:
        available: Sorted tuple of canonical schema names (without suffix)
    """

    available: tuple[str, ...] = ()

    def __init__(self) -> None:
        object.__setattr__(self, "available", tuple(sorted(self._discover_schemas())))

    def _discover_schemas(self) -> list[str]:
        try:
            schema_files = files(SCHEMA_PACKAGE)
            return [
                item.name.removesuffix(SCHEMA_SUFFIX)
                for item in schema_files.iterdir()
                if item.name.endswith(SCHEMA_SUFFIX)
            ]
        except (ModuleNotFoundError, FileNotFoundError):
            return []

    def get_text(self, name: str) -> str:
        """Load schema text.

        Raises:
            KeyError: If the schema is not packaged
        """
        canonical_name = name.removesuffix(SCHEMA_SUFFIX)
        if canonical_name not in self.available:
            raise KeyError(
                f"Schema '{canonical_name}' not found in warpack package data. "
                f"Available schemas: {', '.join(self.available) or 'none'}"
            )
        schema_file = files(SCHEMA_PACKAGE) / f"{canonical_name}{SCHEMA_SUFFIX}"
        return schema_file.read_text(encoding="utf-8")

    def get_json(self, name: str) -> dict[str, Any]:
        """Load schema as a parsed dictionary.

        Raises:
            KeyError: If the schema is not packaged
            ValueError: If the schema JSON is malformed
        """
        text = self.get_text(name)
        try:
            res: dict[str, Any] = json.loads(text)
            return res
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Schema '{name}' contains invalid JSON: {e}\n"
                f"This may indicate a corrupted installation. Try reinstalling warpack."
            ) from e


_registry: SchemaRegistry | None = None


def get_registry() -> SchemaRegistry:
    """Get the shared schema registry."""
    global _registry
    if _registry is None:
        _registry = SchemaRegistry()
    return _registry
