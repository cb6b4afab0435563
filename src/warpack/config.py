"""Load, validate and normalise ``config/warpack.yaml``."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from warpack.errors import ConfigError, ConfigurationConflict
from warpack.gems.requirements import parse_requirement
from warpack.schemas.validator import validate_data
from warpack.staging.types import PackageRequirement

CONFIG_RELATIVE_PATH = Path("config/warpack.yaml")
CONFIG_SCHEMA = "warpack_config"
ARCHIVERS: tuple[str, ...] = ("jar", "zip")

# Keep this literal deterministic and sorted in write path.
CONFIG_TEMPLATE: dict[str, Any] = {
    "staging_dir": "tmp/war",
    "dirs": ["app", "config", "lib", "log", "vendor", "tmp"],
    "includes": [],
    "excludes": [],
    "public_html": ["public/**/*"],
    "java_libs": [],
    "gems": [],
    "gem_dependencies": True,
    "gem_homes": [],
    "archiver": "jar",
    "webxml": {
        "booter": "rails",
        "rails.env": "production",
        "jruby.min.runtimes": 1,
        "jruby.max.runtimes": 5,
    },
    "verbose": False,
}


@dataclass(frozen=True)
class WarConfig:
    """Validated packaging configuration; all paths are absolute."""

    base_dir: Path
    war_name: str
    staging_dir: Path
    gem_target_path: Path
    dirs: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    public_html: tuple[str, ...] = ("public/**/*",)
    java_libs: tuple[str, ...] = ()
    gems: tuple[PackageRequirement, ...] = ()
    gem_dependencies: bool = True
    gem_homes: tuple[Path, ...] = ()
    package_index: Path | None = None
    archiver: str = "jar"
    webxml: dict[str, Any] = field(default_factory=dict)
    verbose: bool = False
    path: Path | None = None

    @property
    def war_path(self) -> Path:
        return self.base_dir / f"{self.war_name}.war"

    def to_dict(self) -> dict[str, Any]:
        """JSON/YAML friendly view for debug output."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        data["gem_homes"] = [str(path) for path in self.gem_homes]
        data["gems"] = [
            {"name": gem.name, "version": gem.constraint} for gem in self.gems
        ]
        for key in ("dirs", "includes", "excludes", "public_html", "java_libs"):
            data[key] = list(data[key])
        data["war_path"] = str(self.war_path)
        return data


def config_path_for(base_dir: Path) -> Path:
    return base_dir.resolve() / CONFIG_RELATIVE_PATH


def ensure_default_config(base_dir: Path, *, force: bool = False) -> Path:
    """Write the default configuration file deterministically."""
    output_path = config_path_for(base_dir)
    if output_path.exists() and not force:
        raise FileExistsError(f"Config file already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    rendered = yaml.safe_dump(CONFIG_TEMPLATE, sort_keys=True)
    output_path.write_text(rendered, encoding="utf-8")
    return output_path


def load_config(base_dir: Path, path: Path | None = None) -> WarConfig:
    """Load configuration for the application rooted at ``base_dir``.

    An explicit ``path`` must exist. Without one, ``config/warpack.yaml`` is
    used when present and built-in defaults otherwise.

    Raises:
        ConfigError: If the file is unreadable or fails schema validation
        ConfigurationConflict: If the gem list names one gem with two constraints
    """
    base = base_dir.resolve()
    config_file = path if path is not None else config_path_for(base)
    if path is not None and not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")

    raw: Any = {}
    if config_file.exists():
        try:
            raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"{config_file} parse error: {exc}") from exc
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{config_file} parse error: expected mapping at top level")
        source: Path | None = config_file.resolve()
    else:
        source = None

    return config_from_dict(raw, base_dir=base, path=source)


def config_from_dict(raw: dict[str, Any], *, base_dir: Path, path: Path | None = None) -> WarConfig:
    """Validate a raw mapping and normalise it over the defaults."""
    try:
        validate_data(raw, CONFIG_SCHEMA)
    except ValueError as exc:
        where = str(path) if path is not None else "configuration"
        raise ConfigError(f"Invalid {where}: {exc}") from exc

    merged: dict[str, Any] = {**CONFIG_TEMPLATE, **raw}
    if "webxml" in raw:
        merged["webxml"] = {**CONFIG_TEMPLATE["webxml"], **raw["webxml"]}

    staging_dir = _absolute(base_dir, merged["staging_dir"])
    if staging_dir == base_dir or base_dir.is_relative_to(staging_dir):
        raise ConfigError(f"staging_dir must not contain the application directory: {staging_dir}")

    gem_target_raw = merged.get("gem_target_path")
    gem_target_path = (
        _absolute(base_dir, gem_target_raw)
        if gem_target_raw
        else staging_dir / "WEB-INF" / "gems"
    )
    package_index_raw = merged.get("package_index")

    return WarConfig(
        base_dir=base_dir,
        war_name=merged.get("war_name") or base_dir.name,
        staging_dir=staging_dir,
        gem_target_path=gem_target_path,
        dirs=tuple(merged["dirs"]),
        includes=tuple(merged["includes"]),
        excludes=tuple(merged["excludes"]),
        public_html=tuple(merged["public_html"]),
        java_libs=tuple(merged["java_libs"]),
        gems=_normalize_gems(merged["gems"]),
        gem_dependencies=bool(merged["gem_dependencies"]),
        gem_homes=tuple(_absolute(base_dir, home) for home in merged["gem_homes"]),
        package_index=_absolute(base_dir, package_index_raw) if package_index_raw else None,
        archiver=merged["archiver"],
        webxml=dict(merged["webxml"]),
        verbose=bool(merged["verbose"]),
        path=path,
    )


def _normalize_gems(entries: list[Any]) -> tuple[PackageRequirement, ...]:
    """Parse gem entries, rejecting one name requested with two constraints."""
    gems: dict[str, PackageRequirement] = {}
    for entry in entries:
        if isinstance(entry, str):
            requirement = PackageRequirement(name=entry.strip())
        else:
            version = entry.get("version")
            constraint = str(version).strip() if version is not None else ""
            requirement = PackageRequirement(name=str(entry["name"]).strip(), constraint=constraint or None)
        parse_requirement(requirement.constraint)

        existing = gems.get(requirement.name)
        if existing is not None and existing != requirement:
            raise ConfigurationConflict(
                f"gem '{requirement.name}' requested with conflicting versions: "
                f"{existing.constraint or 'any'} and {requirement.constraint or 'any'}"
            )
        gems[requirement.name] = requirement
    return tuple(gems.values())


def _absolute(base_dir: Path, value: str | Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path
