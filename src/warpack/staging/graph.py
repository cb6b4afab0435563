"""Explicit task registry for one packaging run."""

from __future__ import annotations

import logging
from dataclasses import replace
from graphlib import CycleError, TopologicalSorter
from typing import TYPE_CHECKING

from warpack.errors import ConfigurationConflict
from warpack.staging.types import TaskGraphNode, TaskKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from warpack.staging.types import PackageIdentity

logger = logging.getLogger(__name__)


class TaskGraph:
    """Named tasks with prerequisites.

    Copy and directory tasks are named by their destination path, unpack tasks
    by ``unpack:<name>-<version>``, aggregates by their target name. A copy
    task's source file is listed as a prerequisite but is not itself a node.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, TaskGraphNode] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TaskGraphNode]:
        return iter(self._nodes.values())

    def get(self, name: str) -> TaskGraphNode:
        try:
            return self._nodes[name]
        except KeyError:
            raise KeyError(f"Task `{name}` is not declared") from None

    @property
    def nodes(self) -> tuple[TaskGraphNode, ...]:
        return tuple(self._nodes.values())

    def add(self, node: TaskGraphNode) -> TaskGraphNode:
        """Declare a node; redeclaring an identical node or the same directory is a no-op."""
        existing = self._nodes.get(node.name)
        if existing is None:
            self._nodes[node.name] = node
            return node
        if existing == node:
            return existing
        if existing.kind is TaskKind.CREATE_DIRECTORY and node.kind is TaskKind.CREATE_DIRECTORY:
            return self._merge_directory(existing, node)
        if existing.kind is TaskKind.COPY_FILE and node.kind is TaskKind.COPY_FILE:
            raise ConfigurationConflict(
                f"Staging destination {node.name} is claimed by both "
                f"{existing.source} and {node.source}"
            )
        raise ConfigurationConflict(
            f"Task `{node.name}` declared twice as {existing.kind.value} and {node.kind.value}"
        )

    def declare_directory(self, path: Path, source: Path | None = None) -> str:
        """Declare ``path``; ``source`` is the directory it mirrors, if any."""
        name = str(path)
        self.add(
            TaskGraphNode(name=name, kind=TaskKind.CREATE_DIRECTORY, source=source, destination=path)
        )
        return name

    def _merge_directory(self, existing: TaskGraphNode, node: TaskGraphNode) -> TaskGraphNode:
        if node.source is None or existing.source == node.source:
            return existing
        if existing.source is None:
            merged = replace(existing, source=node.source)
            self._nodes[existing.name] = merged
            return merged
        raise ConfigurationConflict(
            f"Staging destination {node.name} is claimed by both "
            f"{existing.source} and {node.source}"
        )

    def declare_copy(
        self,
        source: Path,
        destination: Path,
        *,
        extra_prerequisites: Iterable[str] = (),
    ) -> str:
        """Declare ``destination`` as a stale-checked copy of ``source``."""
        parent = self.declare_directory(destination.parent)
        node = TaskGraphNode(
            name=str(destination),
            kind=TaskKind.COPY_FILE,
            prerequisites=_dedupe((parent, str(source), *extra_prerequisites)),
            source=source,
            destination=destination,
        )
        return self.add(node).name

    def declare_unpack(self, identity: PackageIdentity, gems_dir: Path) -> str:
        gems_task = self.declare_directory(gems_dir)
        node = TaskGraphNode(
            name=identity.unpack_task_name,
            kind=TaskKind.UNPACK_PACKAGE,
            prerequisites=(gems_task,),
            destination=gems_dir,
            package=identity,
            description=f"Unpack {identity.label} into {gems_dir}",
        )
        return self.add(node).name

    def aggregate(self, name: str, prerequisites: Iterable[str], description: str = "") -> str:
        node = TaskGraphNode(
            name=name,
            kind=TaskKind.AGGREGATE,
            prerequisites=_dedupe(prerequisites),
            description=description,
        )
        return self.add(node).name

    def task_prerequisites(self, node: TaskGraphNode) -> tuple[str, ...]:
        """Prerequisites that are tasks (drops a copy task's source file)."""
        if node.kind is TaskKind.COPY_FILE and node.source is not None:
            source = str(node.source)
            return tuple(p for p in node.prerequisites if p != source)
        return node.prerequisites

    def validate(self) -> None:
        """Check that every prerequisite is declared and the graph is acyclic."""
        for node in self._nodes.values():
            for prerequisite in self.task_prerequisites(node):
                if prerequisite not in self._nodes:
                    raise ConfigurationConflict(
                        f"Task `{node.name}` depends on undeclared task `{prerequisite}`"
                    )

        sorter: TopologicalSorter[str] = TopologicalSorter()
        for node in self._nodes.values():
            sorter.add(node.name, *self.task_prerequisites(node))
        try:
            sorter.prepare()
        except CycleError as exc:
            cycle = " -> ".join(exc.args[1]) if len(exc.args) > 1 else ""
            raise ConfigurationConflict(f"Task graph has a cycle: {cycle}") from exc

    def plan(self, target: str) -> list[TaskGraphNode]:
        """Return the tasks ``target`` reaches, prerequisites first."""
        self.get(target)
        ordered: list[TaskGraphNode] = []
        done: set[str] = set()
        active: set[str] = set()

        def visit(name: str) -> None:
            if name in done:
                return
            if name in active:
                raise ConfigurationConflict(f"Task graph has a cycle through `{name}`")
            active.add(name)
            node = self._nodes[name]
            for prerequisite in self.task_prerequisites(node):
                visit(prerequisite)
            active.discard(name)
            done.add(name)
            ordered.append(node)

        visit(target)
        logger.debug("planned %d tasks for %s", len(ordered), target)
        return ordered


def _dedupe(items: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return tuple(result)
