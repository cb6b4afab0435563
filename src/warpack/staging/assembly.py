"""Assemble file and gem tasks into the named staging aggregates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from warpack.gems.resolver import GemResolver, ResolvedPackageSet, declare_package_tasks
from warpack.staging.files import (
    collect_sources,
    declare_file_tasks,
    generate_staging_targets,
)
from warpack.staging.graph import TaskGraph
from warpack.staging.types import StagingCategory

if TYPE_CHECKING:
    from warpack.config import WarConfig
    from warpack.gems.index import PackageIndex

logger = logging.getLogger(__name__)

STATIC = "static"
JAVA_LIBS = "java_libs"
PACKAGES = "packages"
APPLICATION = "application"


@dataclass
class StagingPlan:
    """Task graph plus the target lists behind each aggregate."""

    graph: TaskGraph
    resolved: ResolvedPackageSet
    targets: dict[str, list[str]] = field(default_factory=dict)


def staging_excludes(config: WarConfig) -> list[str]:
    """Configured excludes plus the staging dir and archive when they sit under the base dir."""
    excludes = list(config.excludes)
    for path in (config.staging_dir, config.war_path):
        if path.is_relative_to(config.base_dir):
            rel = path.relative_to(config.base_dir).as_posix()
            if rel not in excludes:
                excludes.append(rel)
    return excludes


def assemble_staging_graph(
    config: WarConfig,
    index: PackageIndex,
    graph: TaskGraph | None = None,
) -> StagingPlan:
    """Declare every staging task for ``config``.

    Gems are resolved to completion before any task is declared, so a
    resolution failure leaves the graph without package tasks.
    """
    resolver = GemResolver(index, include_dependencies=config.gem_dependencies)
    resolved = resolver.resolve(config.gems)

    graph = graph if graph is not None else TaskGraph()
    excludes = staging_excludes(config)
    verbose = config.verbose

    public_sources = collect_sources(config.base_dir, includes=config.public_html, excludes=excludes)
    app_sources = collect_sources(
        config.base_dir,
        roots=config.dirs,
        includes=config.includes,
        excludes=excludes,
    )
    lib_sources = collect_sources(config.base_dir, includes=config.java_libs, excludes=excludes)

    static_targets = declare_file_tasks(
        graph,
        generate_staging_targets(config.base_dir, config.staging_dir, public_sources, StagingCategory.STATIC),
        verbose=verbose,
    )
    lib_targets = declare_file_tasks(
        graph,
        generate_staging_targets(
            config.base_dir,
            config.staging_dir,
            [source for source in lib_sources if (config.base_dir / source).is_file()],
            StagingCategory.JAVA_LIB,
        ),
        verbose=verbose,
    )
    package_targets = declare_package_tasks(graph, resolved, config.gem_target_path, verbose=verbose)
    app_targets = declare_file_tasks(
        graph,
        generate_staging_targets(config.base_dir, config.staging_dir, app_sources, StagingCategory.APPLICATION),
        verbose=verbose,
    )

    graph.aggregate(STATIC, static_targets, "Copy all public HTML files to the root of the .war")
    graph.aggregate(JAVA_LIBS, lib_targets, "Copy all java libraries into the .war")
    graph.aggregate(PACKAGES, package_targets, "Unpack all gems into WEB-INF/gems")
    graph.aggregate(
        APPLICATION,
        [PACKAGES, JAVA_LIBS, *app_targets],
        "Copy all application files into the .war",
    )

    logger.info(
        "declared %d tasks: %d static, %d application, %d java libs, %d gems",
        len(graph),
        len(static_targets),
        len(app_targets),
        len(lib_targets),
        len(resolved),
    )
    return StagingPlan(
        graph=graph,
        resolved=resolved,
        targets={
            STATIC: static_targets,
            JAVA_LIBS: lib_targets,
            PACKAGES: package_targets,
            APPLICATION: app_targets,
        },
    )
