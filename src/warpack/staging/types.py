"""Staging domain types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class StagingKind(str, Enum):
    """What a staging target materialises as."""

    FILE = "file"
    DIRECTORY = "directory"


class StagingCategory(str, Enum):
    """Source category; decides where a source lands in the staging tree."""

    APPLICATION = "application"
    STATIC = "static"
    JAVA_LIB = "java_lib"
    PACKAGE_SPEC = "package_spec"


class TaskKind(str, Enum):
    """Task graph node kinds."""

    COPY_FILE = "copy_file"
    CREATE_DIRECTORY = "create_directory"
    UNPACK_PACKAGE = "unpack_package"
    AGGREGATE = "aggregate"
    ACTION = "action"


@dataclass(frozen=True)
class StagingTarget:
    """One file or directory that must exist in the staging tree."""

    source: Path
    destination: Path
    kind: StagingKind
    category: StagingCategory


@dataclass(frozen=True, order=True)
class PackageIdentity:
    """Resolved gem identity; the deduplication key of a resolution pass."""

    name: str
    version: str

    @property
    def label(self) -> str:
        return f"{self.name}-{self.version}"

    @property
    def unpack_task_name(self) -> str:
        return f"unpack:{self.label}"


@dataclass(frozen=True)
class PackageRequirement:
    """A gem name with an optional RubyGems version constraint."""

    name: str
    constraint: str | None = None

    def __str__(self) -> str:
        if self.constraint:
            return f"{self.name} ({self.constraint})"
        return self.name


@dataclass(frozen=True)
class PackageResolution:
    """Index entry for one installed gem version."""

    identity: PackageIdentity
    spec_file: Path
    dependencies: tuple[PackageRequirement, ...] = ()


@dataclass(frozen=True)
class TaskGraphNode:
    """A named task with prerequisite names, in declaration order."""

    name: str
    kind: TaskKind
    prerequisites: tuple[str, ...] = ()
    source: Path | None = None
    destination: Path | None = None
    package: PackageIdentity | None = None
    description: str = ""
