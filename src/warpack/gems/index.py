"""Installed gem index: lookup by name and version requirement."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import yaml  # type: ignore[import-untyped]

from warpack.errors import ConfigError
from warpack.gems.requirements import parse_requirement, parse_version, sort_versions
from warpack.staging.types import PackageIdentity, PackageRequirement, PackageResolution

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"""^\s*\w+\.name\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_VERSION_RE = re.compile(r"""^\s*\w+\.version\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_DEPENDENCY_RE = re.compile(
    r"""\w+\.add_(runtime_dependency|dependency|development_dependency)\s*\(?\s*"""
    r"""(?:%q<([^>]+)>|["']([^"']+)["'])(?:\.freeze)?"""
    r"""(?:\s*,\s*\[([^\]]*)\]|((?:\s*,\s*["'][^"']+["'](?:\.freeze)?)+))?"""
)
_QUOTED_RE = re.compile(r"""["']([^"']+)["']""")
_FILENAME_RE = re.compile(r"^(?P<name>.+?)-(?P<version>\d[^-]*)(?:-[^-]+)*\.gemspec$")


class PackageIndex(Protocol):
    """Lookup of installed gems."""

    def search(self, name: str, constraint: str | None = None) -> list[PackageResolution]:
        """Matches in ascending version order."""
        ...

    def find(self, name: str, constraint: str | None = None) -> PackageResolution | None:
        """Highest match (last in ``search`` order), or None."""
        ...


class InMemoryPackageIndex:
    """Index over a fixed set of resolutions."""

    def __init__(self, resolutions: Iterable[PackageResolution] = ()) -> None:
        self._by_name: dict[str, dict[str, PackageResolution]] = {}
        for resolution in resolutions:
            self.add(resolution)

    def add(self, resolution: PackageResolution) -> None:
        versions = self._by_name.setdefault(resolution.identity.name, {})
        versions.setdefault(resolution.identity.version, resolution)

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def search(self, name: str, constraint: str | None = None) -> list[PackageResolution]:
        versions = self._by_name.get(name, {})
        requirement = parse_requirement(constraint)
        return [
            versions[version]
            for version in sort_versions(versions)
            if requirement.matches(version)
        ]

    def find(self, name: str, constraint: str | None = None) -> PackageResolution | None:
        matched = self.search(name, constraint)
        return matched[-1] if matched else None


class SpecificationIndex(InMemoryPackageIndex):
    """Index built from ``<gem_home>/specifications/*.gemspec`` files."""

    def __init__(self, gem_homes: Sequence[Path]) -> None:
        super().__init__()
        self.gem_homes = tuple(gem_homes)
        for gem_home in self.gem_homes:
            spec_dir = gem_home / "specifications"
            if not spec_dir.is_dir():
                logger.debug("no specifications directory under %s", gem_home)
                continue
            for spec_file in sorted(spec_dir.glob("*.gemspec")):
                resolution = read_gemspec(spec_file)
                if resolution is not None:
                    self.add(resolution)

    @classmethod
    def from_environment(cls, environ: dict[str, str] | None = None) -> SpecificationIndex:
        """Use GEM_HOME followed by GEM_PATH entries."""
        env = os.environ if environ is None else environ
        homes: list[Path] = []
        for raw in [env.get("GEM_HOME", ""), *env.get("GEM_PATH", "").split(os.pathsep)]:
            if raw and Path(raw) not in homes:
                homes.append(Path(raw))
        return cls(homes)


def read_gemspec(spec_file: Path) -> PackageResolution | None:
    """Read name, version and runtime dependencies from an installed gemspec."""
    try:
        text = spec_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("skipping unreadable gemspec %s: %s", spec_file, exc)
        return None

    name_match = _NAME_RE.search(text)
    version_match = _VERSION_RE.search(text)
    if name_match and version_match:
        name, version = name_match.group(1), version_match.group(1)
    else:
        file_match = _FILENAME_RE.match(spec_file.name)
        if file_match is None:
            logger.warning("skipping gemspec without name/version: %s", spec_file)
            return None
        name, version = file_match.group("name"), file_match.group("version")

    if parse_version(version) is None:
        logger.warning("skipping gemspec %s: unsupported version %r", spec_file, version)
        return None

    matches = list(_DEPENDENCY_RE.finditer(text))
    # Generated gemspecs repeat development dependencies as add_dependency in
    # their fallback branches.
    development = {
        match.group(2) or match.group(3)
        for match in matches
        if match.group(1) == "development_dependency"
    }

    dependencies: list[PackageRequirement] = []
    seen: set[str] = set()
    for match in matches:
        dep_name = match.group(2) or match.group(3)
        if dep_name in development or dep_name in seen:
            continue
        seen.add(dep_name)
        clauses = _QUOTED_RE.findall(match.group(4) or match.group(5) or "")
        constraint = ", ".join(clauses) if clauses else None
        dependencies.append(PackageRequirement(name=dep_name, constraint=constraint))

    return PackageResolution(
        identity=PackageIdentity(name=name, version=version),
        spec_file=spec_file,
        dependencies=tuple(dependencies),
    )


def load_package_index(path: Path) -> InMemoryPackageIndex:
    """Load a YAML package manifest.

    Format::

        packages:
          - name: rack
            version: 2.2.8
            spec_file: specifications/rack-2.2.8.gemspec
            dependencies:
              webrick: ">= 1.0"
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read package index {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Package index {path} parse error: {exc}") from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("packages"), list):
        raise ConfigError(f"Package index {path} must contain a `packages` list")

    index = InMemoryPackageIndex()
    for position, entry in enumerate(raw["packages"]):
        index.add(_manifest_entry(entry, path, position))
    return index


def _manifest_entry(entry: Any, path: Path, position: int) -> PackageResolution:
    where = f"{path}: packages[{position}]"
    if not isinstance(entry, dict):
        raise ConfigError(f"{where} must be a mapping")
    name = str(entry.get("name", "")).strip()
    version = str(entry.get("version", "")).strip()
    if not name or not version:
        raise ConfigError(f"{where} requires `name` and `version`")
    if parse_version(version) is None:
        raise ConfigError(f"{where} has unsupported version {version!r}")

    spec_raw = entry.get("spec_file") or f"specifications/{name}-{version}.gemspec"
    spec_file = Path(str(spec_raw))
    if not spec_file.is_absolute():
        spec_file = path.parent / spec_file

    deps_raw = entry.get("dependencies") or {}
    if not isinstance(deps_raw, dict):
        raise ConfigError(f"{where}.dependencies must be a mapping of name to constraint")
    dependencies = tuple(
        PackageRequirement(name=str(dep), constraint=str(constraint) if constraint else None)
        for dep, constraint in deps_raw.items()
    )
    for dependency in dependencies:
        parse_requirement(dependency.constraint)

    return PackageResolution(
        identity=PackageIdentity(name=name, version=version),
        spec_file=spec_file,
        dependencies=dependencies,
    )
