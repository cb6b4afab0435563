"""Transitive gem dependency resolution.

Resolution is depth first and memoised by ``PackageIdentity``: an identity,
once resolved, is never scheduled again within a pass. That guard is also what
makes mutually dependent gems terminate.

Version conflicts follow a "first resolved wins, verified" policy. When a gem
name is already resolved, later requirements must be satisfied by the version
already chosen; otherwise the pass fails with ``DependencyConflict``. Two
versions of one gem are never staged side by side.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from warpack.errors import DependencyConflict, PackageNotFound
from warpack.gems.requirements import parse_requirement
from warpack.staging.files import staging_destination
from warpack.staging.types import (
    PackageIdentity,
    PackageRequirement,
    PackageResolution,
    StagingCategory,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from warpack.gems.index import PackageIndex
    from warpack.staging.graph import TaskGraph

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


class ResolvedPackageSet:
    """Identities resolved during one pass, in resolution order."""

    def __init__(self) -> None:
        self._resolutions: dict[PackageIdentity, PackageResolution] = {}
        self._by_name: dict[str, PackageIdentity] = {}
        self._requested_by: dict[PackageIdentity, list[str]] = {}

    def __contains__(self, identity: object) -> bool:
        return identity in self._resolutions

    def __len__(self) -> int:
        return len(self._resolutions)

    def __iter__(self) -> Iterator[PackageResolution]:
        return iter(self._resolutions.values())

    def add(self, resolution: PackageResolution) -> None:
        identity = resolution.identity
        self._resolutions[identity] = resolution
        self._by_name[identity.name] = identity

    def identity_for(self, name: str) -> PackageIdentity | None:
        return self._by_name.get(name)

    def note_requirement(self, identity: PackageIdentity, requirement: PackageRequirement) -> None:
        self._requested_by.setdefault(identity, []).append(str(requirement))

    def requirements_for(self, identity: PackageIdentity) -> list[str]:
        return list(self._requested_by.get(identity, []))

    @property
    def identities(self) -> tuple[PackageIdentity, ...]:
        return tuple(self._resolutions)


class GemResolver:
    """Resolve requested gems (and optionally their runtime dependencies)."""

    def __init__(
        self,
        index: PackageIndex,
        *,
        include_dependencies: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.index = index
        self.include_dependencies = include_dependencies
        self.max_depth = max_depth

    def resolve(self, requirements: Iterable[PackageRequirement]) -> ResolvedPackageSet:
        """Resolve every requirement; any miss aborts the whole pass."""
        resolved = ResolvedPackageSet()
        for requirement in requirements:
            self._resolve_one(requirement, resolved, chain=())
        logger.info(
            "resolved %d gem(s): %s",
            len(resolved),
            ", ".join(identity.label for identity in resolved.identities) or "none",
        )
        return resolved

    def _resolve_one(
        self,
        requirement: PackageRequirement,
        resolved: ResolvedPackageSet,
        chain: tuple[str, ...],
    ) -> None:
        if len(chain) >= self.max_depth:
            raise DependencyConflict(
                f"Dependency chain deeper than {self.max_depth}: {' -> '.join(chain)}"
            )

        existing = resolved.identity_for(requirement.name)
        if existing is not None:
            self._check_compatible(existing, requirement, resolved, chain)
            resolved.note_requirement(existing, requirement)
            return

        resolution = self.index.find(requirement.name, requirement.constraint)
        if resolution is None:
            raise PackageNotFound(requirement.name, requirement.constraint, chain)

        identity = resolution.identity
        resolved.add(resolution)
        resolved.note_requirement(identity, requirement)
        logger.debug("resolved %s as %s", requirement, identity.label)

        if not self.include_dependencies:
            return
        for dependency in resolution.dependencies:
            self._resolve_one(dependency, resolved, (*chain, identity.label))

    def _check_compatible(
        self,
        identity: PackageIdentity,
        requirement: PackageRequirement,
        resolved: ResolvedPackageSet,
        chain: tuple[str, ...],
    ) -> None:
        if parse_requirement(requirement.constraint).satisfied_by(identity.version):
            return
        earlier = ", ".join(resolved.requirements_for(identity)) or identity.name
        where = f" (required by {' -> '.join(chain)})" if chain else ""
        raise DependencyConflict(
            f"gem '{requirement}'{where} conflicts with {identity.label} "
            f"already resolved for {earlier}"
        )


def declare_package_tasks(
    graph: TaskGraph,
    resolved: ResolvedPackageSet,
    gem_target: Path,
    *,
    verbose: bool = False,
) -> list[str]:
    """Declare spec-copy and unpack tasks; returns them in resolution order."""
    gems_dir = gem_target / "gems"
    graph.declare_directory(gems_dir)
    names: list[str] = []
    for resolution in resolved:
        identity = resolution.identity
        destination = staging_destination(
            Path(resolution.spec_file.name), gem_target, StagingCategory.PACKAGE_SPEC
        )
        unpack_name = graph.declare_unpack(identity, gems_dir)
        copy_name = graph.declare_copy(resolution.spec_file, destination)
        if verbose:
            logger.info('file "%s" => "%s"', destination, resolution.spec_file)
            logger.info('task "%s" => "%s"', unpack_name, gems_dir)
        names.extend((copy_name, unpack_name))
    return names
