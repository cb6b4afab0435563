"""Archivers that turn the staging tree into ``<war_name>.war``."""

from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path
from typing import Protocol

from warpack.errors import ArchiveFailure, ConfigError
from warpack.exec import run_command

logger = logging.getLogger(__name__)

# Fixed entry timestamp so identical staging trees give identical archives.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class Archiver(Protocol):
    """Creates an archive from a staging directory."""

    def create(self, staging_dir: Path, war_path: Path) -> Path: ...


class JarArchiver:
    """Runs ``jar cf <war> -C <staging> .``."""

    def __init__(self, jar_command: str = "jar") -> None:
        self.jar_command = jar_command

    def create(self, staging_dir: Path, war_path: Path) -> Path:
        argv = [self.jar_command, "cf", str(war_path), "-C", str(staging_dir), "."]
        result = run_command(argv, cwd=war_path.parent, check=False)
        if result.returncode != 0:
            raise ArchiveFailure(
                f"{self.jar_command} exited {result.returncode} creating {war_path}\n{result.diagnostic}"
            )
        logger.info("created %s", war_path)
        return war_path


class ZipArchiver:
    """Writes a deterministic zip with sorted entries."""

    def create(self, staging_dir: Path, war_path: Path) -> Path:
        if not staging_dir.is_dir():
            raise ArchiveFailure(f"Staging directory does not exist: {staging_dir}")

        entries: list[Path] = []
        for root, dirs, files in os.walk(staging_dir):
            dirs.sort()
            for name in sorted(files):
                entries.append(Path(root) / name)

        war_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(war_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for abs_path in entries:
                rel_path = abs_path.relative_to(staging_dir).as_posix()
                info = zipfile.ZipInfo(rel_path, date_time=ZIP_EPOCH)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = (abs_path.stat().st_mode & 0o777) << 16
                zf.writestr(info, abs_path.read_bytes())
        logger.info("created %s (%d entries)", war_path, len(entries))
        return war_path


def archiver_for(name: str) -> Archiver:
    if name == "jar":
        return JarArchiver()
    if name == "zip":
        return ZipArchiver()
    raise ConfigError(f"Unknown archiver `{name}`")
