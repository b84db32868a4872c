"""CLI entrypoint for viewer-build."""

import logging
import os
from pathlib import Path

import rich_click as click

from viewer_build import __version__
from viewer_build.controllers import BuildCliController, ListTasksCommand, RunTasksCommand
from viewer_build.logging_setup import setup_logging

click.rich_click.USE_MARKDOWN = True
BUILD_CONTROLLER = BuildCliController()


@click.group()
@click.version_option(version=__version__, prog_name="viewer-build")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console log level. Defaults to VIEWER_BUILD_LOG_LEVEL or INFO.",
)
def viewer_build(log_level: str | None) -> None:
    """Build, pack and serve the point cloud viewer."""

    level_name = (log_level or os.getenv("VIEWER_BUILD_LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise click.BadParameter(f"Unknown log level: {level_name}", param_hint="--log-level")
    setup_logging(level)


@viewer_build.command("run")
@click.argument("tasks", nargs=-1, required=True)
@click.option(
    "--root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project root. Defaults to VIEWER_BUILD_ROOT or the current directory.",
)
def run(tasks: tuple[str, ...], root: Path | None) -> None:
    """Run one or more tasks in order, for example `build` or `watch`."""

    result = BUILD_CONTROLLER.run_tasks(RunTasksCommand(root=root, tasks=tasks))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Build failed.")


@viewer_build.command("tasks")
@click.option(
    "--root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project root. Defaults to VIEWER_BUILD_ROOT or the current directory.",
)
def list_tasks(root: Path | None) -> None:
    """List registered tasks."""

    _emit_lines(BUILD_CONTROLLER.list_tasks(ListTasksCommand(root=root)))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    viewer_build()
