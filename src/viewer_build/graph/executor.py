"""Asynchronous executor for task graphs."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from viewer_build.graph.tasks import CompositionMode, Task, TaskGraph

logger = logging.getLogger(__name__)


class TaskError(RuntimeError):
    """Task failure; groups carry the failures of their children in ``errors``."""

    def __init__(
        self,
        task_name: str,
        message: str,
        *,
        errors: Sequence[TaskError] = (),
    ) -> None:
        super().__init__(f"Task {task_name!r} failed: {message}")
        self.task_name = task_name
        self.errors = tuple(errors)


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """Lifecycle record of one task within a run."""

    task_name: str
    kind: str
    elapsed_seconds: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class TaskRunResult:
    """Outcome of running one named task."""

    task_name: str
    events: list[TaskEvent] = field(default_factory=list)
    error: TaskError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def started(self) -> list[str]:
        return [event.task_name for event in self.events if event.kind == "started"]

    def finished(self) -> list[str]:
        return [event.task_name for event in self.events if event.kind == "finished"]


class TaskExecutor:
    """Runs tasks from a ``TaskGraph`` honoring series and parallel composition.

    Series children run strictly in order and the first failure aborts the
    remaining siblings. Parallel children all run to completion; every
    failure is logged and the first one (in completion order) is surfaced.
    Synchronous actions are run in a worker thread so that file I/O of
    parallel siblings overlaps.
    """

    def __init__(
        self,
        graph: TaskGraph,
        *,
        on_event: Callable[[TaskEvent], None] | None = None,
    ) -> None:
        self._graph = graph
        self._on_event = on_event or (lambda _event: None)

    async def run(self, name: str) -> TaskRunResult:
        task = self._graph.get(name)
        result = TaskRunResult(task_name=name)
        try:
            await self._execute(task, result.events)
        except TaskError as error:
            result.error = error
        return result

    async def run_many(self, names: Sequence[str]) -> list[TaskRunResult]:
        """Run tasks one after another, stopping after the first failure."""

        results: list[TaskRunResult] = []
        for name in names:
            result = await self.run(name)
            results.append(result)
            if not result.succeeded:
                break
        return results

    async def _execute(self, task: Task, events: list[TaskEvent]) -> None:
        self._emit(events, TaskEvent(task_name=task.name, kind="started"))
        logger.info("Starting '%s'...", task.name)
        start = time.monotonic()
        try:
            if task.mode is CompositionMode.ACTION:
                await self._call(task)
            elif task.mode is CompositionMode.SERIES:
                for child in task.children:
                    await self._execute(child, events)
            else:
                await self._run_parallel(task, events)
        except TaskError as error:
            elapsed = time.monotonic() - start
            self._emit(events, _failed(task, elapsed, error))
            raise
        except Exception as error:  # noqa: BLE001
            elapsed = time.monotonic() - start
            task_error = TaskError(task.name, str(error) or type(error).__name__)
            logger.error("'%s' errored after %s: %s", task.name, _format_elapsed(elapsed), error)
            self._emit(events, _failed(task, elapsed, task_error))
            raise task_error from error

        elapsed = time.monotonic() - start
        self._emit(
            events,
            TaskEvent(task_name=task.name, kind="finished", elapsed_seconds=elapsed),
        )
        logger.info("Finished '%s' after %s", task.name, _format_elapsed(elapsed))

    async def _run_parallel(self, task: Task, events: list[TaskEvent]) -> None:
        failures: list[TaskError] = []

        async def _child(child: Task) -> None:
            try:
                await self._execute(child, events)
            except TaskError as error:
                failures.append(error)

        await asyncio.gather(*(_child(child) for child in task.children))
        if not failures:
            return

        first = failures[0]
        for other in failures[1:]:
            logger.error("'%s' also failed: %s", task.name, other)
        raise TaskError(
            task.name,
            f"{len(failures)} of {len(task.children)} parallel task(s) failed; first: {first}",
            errors=failures,
        ) from first

    async def _call(self, task: Task) -> None:
        body = task.action
        if body is None:
            raise TaskError(task.name, "action task has no body")
        if inspect.iscoroutinefunction(body):
            await body()
            return
        outcome = await asyncio.to_thread(body)
        if inspect.isawaitable(outcome):
            await outcome

    def _emit(self, events: list[TaskEvent], event: TaskEvent) -> None:
        events.append(event)
        self._on_event(event)


def _failed(task: Task, elapsed: float, error: TaskError) -> TaskEvent:
    return TaskEvent(
        task_name=task.name,
        kind="failed",
        elapsed_seconds=elapsed,
        error=str(error),
    )


def _format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"
