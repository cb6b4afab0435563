"""warpack CLI - stage a web application and build its .war."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path

import typer

from warpack import __version__
from warpack.config import ensure_default_config, load_config
from warpack.errors import WarpackError
from warpack.packager import WarPackager
from warpack.ui import configure_logging, console, render_task_table

cli = typer.Typer(
    name="warpack",
    help="warpack - stage a web application and package it as a .war",
    no_args_is_help=True,
)


@dataclass
class CliState:
    """Options shared by every command."""

    base_dir: Path
    config_path: Path | None
    verbose: bool


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    ctx: typer.Context,
    base_dir: Path = typer.Option(
        Path("."),
        "--base-dir",
        "-C",
        help="Application root (defaults to the current directory).",
        file_okay=False,
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="WARPACK_CONFIG",
        help="Config file (defaults to config/warpack.yaml under the base dir).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every declared file and directory task.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show warpack version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    _ = version
    configure_logging(verbose)
    ctx.obj = CliState(base_dir=base_dir, config_path=config_path, verbose=verbose)


def _packager(ctx: typer.Context) -> WarPackager:
    state: CliState = ctx.obj
    config = load_config(state.base_dir, state.config_path)
    if state.verbose and not config.verbose:
        config = replace(config, verbose=True)
    return WarPackager(config)


def _fail(exc: WarpackError) -> typer.Exit:
    typer.echo(f"{exc.reason_code}: {exc}", err=True)
    return typer.Exit(1)


@cli.command("war")
def war(ctx: typer.Context) -> None:
    """Stage everything, generate web.xml and create the .war."""
    try:
        packager = _packager(ctx)
        report = packager.package()
    except WarpackError as exc:
        raise _fail(exc) from exc

    console.print(
        f"[green]Created {packager.config.war_path}[/green] "
        f"({len(report.copied)} copied, {len(report.skipped)} up to date, "
        f"{len(report.unpacked)} gems unpacked)"
    )


@cli.command("stage")
def stage(ctx: typer.Context) -> None:
    """Stage application files, java libs, gems and public files only."""
    try:
        packager = _packager(ctx)
        report = packager.stage()
    except WarpackError as exc:
        raise _fail(exc) from exc

    console.print(
        f"[green]Staged into {packager.config.staging_dir}[/green] "
        f"({len(report.copied)} copied, {len(report.skipped)} up to date, "
        f"{len(report.unpacked)} gems unpacked)"
    )


@cli.command("clean")
def clean(ctx: typer.Context) -> None:
    """Clean up the .war file and the staging area."""
    try:
        removed = _packager(ctx).clean()
    except WarpackError as exc:
        raise _fail(exc) from exc
    for path in removed:
        typer.echo(f"removed={path}")


@cli.command("clear", hidden=True)
def clear(ctx: typer.Context) -> None:
    """Alias for clean."""
    clean(ctx)


@cli.command("tasks")
def tasks(
    ctx: typer.Context,
    all_tasks: bool = typer.Option(
        False,
        "--all",
        help="Include individual file and directory tasks.",
    ),
) -> None:
    """List declared tasks and their prerequisites."""
    try:
        nodes = _packager(ctx).describe()
    except WarpackError as exc:
        raise _fail(exc) from exc
    console.print(render_task_table(nodes, include_files=all_tasks))


@cli.command("debug")
def debug(ctx: typer.Context) -> None:
    """Print the effective configuration."""
    try:
        data = _packager(ctx).debug()
    except WarpackError as exc:
        raise _fail(exc) from exc
    console.print_json(json.dumps(data, sort_keys=True))


@cli.command("init")
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
) -> None:
    """Write the default config/warpack.yaml."""
    state: CliState = ctx.obj
    try:
        path = ensure_default_config(state.base_dir, force=force)
    except FileExistsError as exc:
        typer.echo(f"{exc}. Use --force to overwrite.", err=True)
        raise typer.Exit(1) from exc
    typer.echo(f"config={path}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
