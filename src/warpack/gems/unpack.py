"""Gem extraction into the staging gems directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from warpack.errors import ExtractionFailure
from warpack.exec import run_command

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from warpack.staging.types import PackageIdentity

logger = logging.getLogger(__name__)


class PackageUnpacker(Protocol):
    """Extracts one gem version into a directory."""

    def unpack(self, identity: PackageIdentity, destination_dir: Path) -> None: ...


class GemCommandUnpacker:
    """Runs ``gem unpack -v <version> <name>`` inside the destination dir."""

    def __init__(self, gem_command: Sequence[str] = ("gem",)) -> None:
        self.gem_command = tuple(gem_command)

    def command_for(self, identity: PackageIdentity) -> list[str]:
        return [*self.gem_command, "unpack", "-v", identity.version, identity.name]

    def unpack(self, identity: PackageIdentity, destination_dir: Path) -> None:
        argv = self.command_for(identity)
        logger.info("unpacking %s into %s", identity.label, destination_dir)
        result = run_command(argv, cwd=destination_dir, check=False)
        if result.returncode != 0:
            raise ExtractionFailure(
                f"gem unpack failed for {identity.label} (exit {result.returncode})",
                diagnostic=result.diagnostic,
            )


def unpacked_path(identity: PackageIdentity, destination_dir: Path) -> Path:
    """Directory ``gem unpack`` creates for ``identity``."""
    return destination_dir / identity.label
