"""Sequential executor for a staging task graph."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from warpack.errors import SourceMissing
from warpack.gems.unpack import unpacked_path
from warpack.staging.types import TaskKind

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    from warpack.gems.unpack import PackageUnpacker
    from warpack.staging.graph import TaskGraph
    from warpack.staging.types import TaskGraphNode

logger = logging.getLogger(__name__)


@dataclass
class ExecutionReport:
    """Task names by outcome, in execution order."""

    target: str
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    unpacked: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "target": self.target,
            "copied": list(self.copied),
            "skipped": list(self.skipped),
            "directories": list(self.directories),
            "unpacked": list(self.unpacked),
            "actions": list(self.actions),
        }


def needs_copy(source: Path, destination: Path) -> bool:
    """True when ``destination`` is missing or older than ``source``."""
    try:
        source_mtime = source.stat().st_mtime
    except FileNotFoundError as exc:
        raise SourceMissing(f"Source vanished before copy: {source}") from exc
    try:
        return destination.stat().st_mtime < source_mtime
    except FileNotFoundError:
        return True


class GraphExecutor:
    """Runs the tasks a target reaches, prerequisites first.

    ``actions`` maps action task names to callables; they run only after all
    of their prerequisites succeeded. Any exception aborts the run.
    """

    def __init__(
        self,
        unpacker: PackageUnpacker,
        actions: Mapping[str, Callable[[], None]] | None = None,
    ) -> None:
        self.unpacker = unpacker
        self.actions = dict(actions or {})

    def run(self, graph: TaskGraph, target: str) -> ExecutionReport:
        graph.validate()
        report = ExecutionReport(target=target)
        for node in graph.plan(target):
            self._run_node(node, report)
        logger.info(
            "%s: %d copied, %d up to date, %d gems unpacked",
            target,
            len(report.copied),
            len(report.skipped),
            len(report.unpacked),
        )
        return report

    def _run_node(self, node: TaskGraphNode, report: ExecutionReport) -> None:
        if node.kind is TaskKind.CREATE_DIRECTORY:
            assert node.destination is not None
            node.destination.mkdir(parents=True, exist_ok=True)
            report.directories.append(node.name)
        elif node.kind is TaskKind.COPY_FILE:
            assert node.source is not None and node.destination is not None
            if needs_copy(node.source, node.destination):
                self._copy(node.source, node.destination)
                report.copied.append(node.name)
            else:
                report.skipped.append(node.name)
        elif node.kind is TaskKind.UNPACK_PACKAGE:
            assert node.package is not None and node.destination is not None
            if unpacked_path(node.package, node.destination).is_dir():
                logger.debug("%s already unpacked", node.package.label)
                report.skipped.append(node.name)
            else:
                self.unpacker.unpack(node.package, node.destination)
                report.unpacked.append(node.name)
        elif node.kind is TaskKind.ACTION:
            action = self.actions.get(node.name)
            if action is None:
                raise KeyError(f"No action registered for task `{node.name}`")
            logger.info("running %s", node.name)
            action()
            report.actions.append(node.name)

    def _copy(self, source: Path, destination: Path) -> None:
        logger.debug("cp %s %s", source, destination)
        try:
            shutil.copy2(source, destination)
        except FileNotFoundError as exc:
            if not source.exists():
                raise SourceMissing(f"Source vanished before copy: {source}") from exc
            raise
