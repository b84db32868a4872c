"""Controllers for build CLI commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from viewer_build.config import Settings
from viewer_build.graph.executor import TaskRunResult
from viewer_build.pipeline.tasks import ViewerBuild

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunTasksCommand:
    """CLI inputs for the run command."""

    root: Path | None
    tasks: tuple[str, ...]


@dataclass(slots=True)
class ListTasksCommand:
    """CLI inputs for the tasks listing command."""

    root: Path | None


@dataclass(slots=True)
class RunTasksResult:
    lines: list[str]
    success: bool


class BuildCliController:
    """Coordinates build command execution."""

    def __init__(self, build_factory: Callable[[Settings], ViewerBuild] = ViewerBuild) -> None:
        self._build_factory = build_factory

    def run_tasks(self, command: RunTasksCommand) -> RunTasksResult:
        settings = _load_settings(command.root)
        build = self._build_factory(settings)

        unknown = [name for name in command.tasks if name not in build.graph]
        if unknown:
            return RunTasksResult(
                lines=[
                    f"Unknown task(s): {', '.join(unknown)}",
                    f"Available tasks: {', '.join(build.graph.names())}",
                ],
                success=False,
            )

        results = asyncio.run(_run_and_serve(build, command.tasks))
        lines = [_format_result(result) for result in results]
        success = len(results) == len(command.tasks) and all(r.succeeded for r in results)
        skipped = command.tasks[len(results) :]
        if skipped:
            lines.append(f"Skipped after failure: {', '.join(skipped)}")
        return RunTasksResult(lines=lines, success=success)

    def list_tasks(self, command: ListTasksCommand) -> list[str]:
        build = self._build_factory(_load_settings(command.root))
        tasks = build.graph.tasks()
        width = max((len(task.name) for task in tasks), default=0)
        return [f"{task.name.ljust(width)}  {task.description}".rstrip() for task in tasks]


async def _run_and_serve(build: ViewerBuild, names: tuple[str, ...]) -> list[TaskRunResult]:
    """Run tasks, then keep a started dev server alive until it exits or is interrupted."""

    try:
        results = await build.run(names)
        server = build.dev_server
        if server is not None and server.running and all(r.succeeded for r in results):
            logger.info("Serving %s, press Ctrl+C to stop", server.url)
            await server.wait()
        return results
    finally:
        await build.shutdown()


def _load_settings(root: Path | None) -> Settings:
    settings = Settings.from_env(root=root)
    settings.validate()
    return settings


def _format_result(result: TaskRunResult) -> str:
    steps = len(result.finished())
    if result.succeeded:
        return f"Task {result.task_name}: succeeded ({steps} step(s) finished)"
    return f"Task {result.task_name}: failed ({steps} step(s) finished) - {result.error}"
