"""Top-level packaging run: stage, describe, archive, clean."""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING, Any

from warpack.archive import archiver_for
from warpack.config import WarConfig
from warpack.descriptor import generate_web_xml
from warpack.gems.index import SpecificationIndex, load_package_index
from warpack.gems.unpack import GemCommandUnpacker
from warpack.staging.assembly import APPLICATION, STATIC, StagingPlan, assemble_staging_graph
from warpack.staging.executor import GraphExecutor
from warpack.staging.types import TaskGraphNode, TaskKind

if TYPE_CHECKING:
    from warpack.archive import Archiver
    from warpack.gems.index import PackageIndex
    from warpack.gems.unpack import PackageUnpacker
    from warpack.staging.executor import ExecutionReport

logger = logging.getLogger(__name__)

WEBXML = "webxml"
ARCHIVE = "archive"
STAGE = "stage"
WAR = "war"


def index_for(config: WarConfig) -> PackageIndex:
    """Manifest index if configured, else gemspecs under the gem homes."""
    if config.package_index is not None:
        return load_package_index(config.package_index)
    if config.gem_homes:
        return SpecificationIndex(config.gem_homes)
    return SpecificationIndex.from_environment()


class WarPackager:
    """Builds and runs the task graph for one configuration.

    Every collaborator is injectable; defaults shell out to ``gem``/``jar``
    and read gemspecs from the configured gem homes.
    """

    def __init__(
        self,
        config: WarConfig,
        *,
        index: PackageIndex | None = None,
        unpacker: PackageUnpacker | None = None,
        archiver: Archiver | None = None,
    ) -> None:
        if not isinstance(config, WarConfig):
            raise TypeError(f"WarPackager requires a WarConfig, got {type(config).__name__}")
        self.config = config
        self._index = index
        self.unpacker = unpacker or GemCommandUnpacker()
        self.archiver = archiver or archiver_for(config.archiver)

    @property
    def index(self) -> PackageIndex:
        if self._index is None:
            self._index = index_for(self.config)
        return self._index

    def build_graph(self) -> StagingPlan:
        """Staging graph plus the descriptor, archive and top-level targets."""
        plan = assemble_staging_graph(self.config, self.index)
        graph = plan.graph
        graph.aggregate(STAGE, [APPLICATION, STATIC], "Stage application, gems and public files")
        graph.add(
            TaskGraphNode(
                name=WEBXML,
                kind=TaskKind.ACTION,
                prerequisites=(STAGE,),
                description="Generate a web.xml file for the webapp",
            )
        )
        graph.add(
            TaskGraphNode(
                name=ARCHIVE,
                kind=TaskKind.ACTION,
                prerequisites=(APPLICATION, STATIC, WEBXML),
                description=f"Create {self.config.war_name}.war from the staging tree",
            )
        )
        graph.aggregate(
            WAR,
            [APPLICATION, STATIC, WEBXML, ARCHIVE],
            f"Create {self.config.war_name}.war",
        )
        graph.validate()
        return plan

    def run(self, target: str = WAR) -> ExecutionReport:
        plan = self.build_graph()
        executor = GraphExecutor(
            self.unpacker,
            actions={
                WEBXML: self._generate_descriptor,
                ARCHIVE: self._create_archive,
            },
        )
        return executor.run(plan.graph, target)

    def package(self) -> ExecutionReport:
        return self.run(WAR)

    def stage(self) -> ExecutionReport:
        return self.run(STAGE)

    def clean(self) -> list[str]:
        """Remove the staging area and the archive; returns what was removed."""
        removed: list[str] = []
        if self.config.staging_dir.exists():
            shutil.rmtree(self.config.staging_dir)
            removed.append(str(self.config.staging_dir))
        if self.config.war_path.exists():
            self.config.war_path.unlink()
            removed.append(str(self.config.war_path))
        logger.info("cleaned %s", ", ".join(removed) or "nothing")
        return removed

    def debug(self) -> dict[str, Any]:
        return self.config.to_dict()

    def describe(self) -> list[TaskGraphNode]:
        """Declared tasks in declaration order."""
        return list(self.build_graph().graph)

    def _generate_descriptor(self) -> None:
        generate_web_xml(self.config)

    def _create_archive(self) -> None:
        self.archiver.create(self.config.staging_dir, self.config.war_path)
