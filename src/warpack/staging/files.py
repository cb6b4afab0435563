"""File task generator: sources, destinations and copy tasks."""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from warpack.errors import InvalidPattern
from warpack.staging.types import StagingCategory, StagingKind, StagingTarget

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from warpack.staging.graph import TaskGraph

logger = logging.getLogger(__name__)

PUBLIC_ROOT = "public"
WEB_INF = "WEB-INF"


def validate_pattern(pattern: str) -> str:
    """Reject glob patterns that cannot be expanded safely under the base dir."""
    cleaned = pattern.strip()
    if not cleaned:
        raise InvalidPattern("Empty glob pattern")
    if cleaned.startswith("/") or PurePosixPath(cleaned).is_absolute():
        raise InvalidPattern(f"Glob pattern must be relative: {pattern!r}")
    if ".." in PurePosixPath(cleaned).parts:
        raise InvalidPattern(f"Glob pattern escapes the base directory: {pattern!r}")

    depth = 0
    for char in cleaned:
        if char == "[":
            if depth:
                raise InvalidPattern(f"Nested character class in glob pattern: {pattern!r}")
            depth = 1
        elif char == "]" and depth:
            depth = 0
    if depth:
        raise InvalidPattern(f"Unbalanced '[' in glob pattern: {pattern!r}")

    for part in PurePosixPath(cleaned).parts:
        if "**" in part and part != "**":
            raise InvalidPattern(f"'**' must be a whole path component: {pattern!r}")
    return cleaned


def collect_sources(
    base_dir: Path,
    roots: Sequence[str] = (),
    includes: Sequence[str] = (),
    excludes: Sequence[str] = (),
) -> list[Path]:
    """Expand roots and includes, then drop excludes.

    Every pattern is validated before anything touches the filesystem.
    Returns sorted base-relative paths.
    """
    root_patterns = [f"{validate_pattern(root).rstrip('/')}/**/*" for root in roots]
    include_patterns = [validate_pattern(pattern) for pattern in includes]
    exclude_patterns = [validate_pattern(pattern) for pattern in excludes]

    found: set[PurePosixPath] = set()
    for pattern in (*root_patterns, *include_patterns):
        found.update(_expand(base_dir, pattern))

    kept = sorted(rel for rel in found if not is_excluded(rel, exclude_patterns))
    logger.debug(
        "collected %d sources (%d excluded) under %s",
        len(kept),
        len(found) - len(kept),
        base_dir,
    )
    return [Path(rel) for rel in kept]


def is_excluded(rel: PurePosixPath | str, patterns: Iterable[str]) -> bool:
    """True when ``rel`` or one of its parent directories matches an exclude."""
    path = PurePosixPath(rel)
    candidates = [path, *path.parents]
    for pattern in patterns:
        variants = {pattern.rstrip("/")}
        if pattern.startswith("**/"):
            variants.add(pattern[3:].rstrip("/"))
        for candidate in candidates:
            text = candidate.as_posix()
            if text == ".":
                continue
            if any(fnmatchcase(text, variant) for variant in variants):
                return True
    return False


def staging_destination(source: Path, staging_dir: Path, category: StagingCategory) -> Path:
    """Map a base-relative source to its place in the staging tree."""
    if category is StagingCategory.APPLICATION:
        return staging_dir / WEB_INF / source
    if category is StagingCategory.STATIC:
        parts = source.parts
        if parts and parts[0] == PUBLIC_ROOT:
            parts = parts[1:]
        return staging_dir.joinpath(*parts)
    if category is StagingCategory.JAVA_LIB:
        return staging_dir / WEB_INF / "lib" / source.name
    if category is StagingCategory.PACKAGE_SPEC:
        return staging_dir / "specifications" / source.name
    raise ValueError(f"Unknown staging category: {category}")


def generate_staging_targets(
    base_dir: Path,
    staging_dir: Path,
    sources: Iterable[Path],
    category: StagingCategory,
) -> list[StagingTarget]:
    targets: list[StagingTarget] = []
    for source in sources:
        absolute = source if source.is_absolute() else base_dir / source
        kind = StagingKind.DIRECTORY if absolute.is_dir() else StagingKind.FILE
        targets.append(
            StagingTarget(
                source=absolute,
                destination=staging_destination(source, staging_dir, category),
                kind=kind,
                category=category,
            )
        )
    return targets


def declare_file_tasks(
    graph: TaskGraph,
    targets: Iterable[StagingTarget],
    *,
    verbose: bool = False,
) -> list[str]:
    """Declare directory/copy tasks for targets and return their task names."""
    names: list[str] = []
    for target in targets:
        if target.kind is StagingKind.DIRECTORY:
            name = graph.declare_directory(target.destination, target.source)
            if verbose:
                logger.info('directory "%s"', target.destination)
        else:
            name = graph.declare_copy(target.source, target.destination)
            if verbose:
                logger.info('file "%s" => "%s"', target.destination, target.source)
        names.append(name)
    return names


def _expand(base_dir: Path, pattern: str) -> set[PurePosixPath]:
    if not _has_magic(pattern):
        candidate = base_dir / pattern
        return {PurePosixPath(pattern)} if candidate.exists() else set()

    allow_hidden = any(part.startswith(".") for part in PurePosixPath(pattern).parts)
    matches: set[PurePosixPath] = set()
    try:
        for path in base_dir.glob(pattern):
            rel = PurePosixPath(path.relative_to(base_dir).as_posix())
            if not allow_hidden and any(part.startswith(".") for part in rel.parts):
                continue
            matches.add(rel)
    except ValueError as exc:
        raise InvalidPattern(f"Invalid glob pattern {pattern!r}: {exc}") from exc
    return matches


def _has_magic(pattern: str) -> bool:
    return any(char in pattern for char in "*?[")
