from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from warpack.staging.types import TaskGraphNode, TaskKind

console = Console()
err_console = Console(stderr=True)

KIND_STYLES: dict[TaskKind, str] = {
    TaskKind.AGGREGATE: "bold cyan",
    TaskKind.ACTION: "bold magenta",
    TaskKind.UNPACK_PACKAGE: "yellow",
    TaskKind.CREATE_DIRECTORY: "blue",
    TaskKind.COPY_FILE: "green",
}


def color_enabled() -> bool:
    return os.getenv("WARPACK_NO_COLOR", "0") != "1"


def configure_logging(verbose: bool = False) -> None:
    """Route ``warpack`` loggers to stderr through rich."""
    logger = logging.getLogger("warpack")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=err_console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def render_task_table(nodes: list[TaskGraphNode], *, include_files: bool = False) -> Table:
    """Tasks and prerequisites; file/dir tasks only when ``include_files``."""
    table = Table(title="warpack tasks", show_lines=False)
    table.add_column("task", no_wrap=True)
    table.add_column("kind")
    table.add_column("prerequisites")
    for node in nodes:
        if not include_files and node.kind in (TaskKind.COPY_FILE, TaskKind.CREATE_DIRECTORY):
            continue
        style = KIND_STYLES[node.kind] if color_enabled() else ""
        prerequisites = node.prerequisites
        if len(prerequisites) > 6 and not include_files:
            shown = ", ".join(prerequisites[:6]) + f", ... ({len(prerequisites)} total)"
        else:
            shown = ", ".join(prerequisites)
        table.add_row(node.name, node.kind.value, shown, style=style)
    return table
