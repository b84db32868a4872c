"""Task graph and executor."""

from viewer_build.graph.executor import TaskError, TaskEvent, TaskExecutor, TaskRunResult
from viewer_build.graph.tasks import (
    CompositionMode,
    Task,
    TaskGraph,
    UnknownTaskError,
    action,
    parallel,
    series,
)

__all__ = [
    "CompositionMode",
    "Task",
    "TaskError",
    "TaskEvent",
    "TaskExecutor",
    "TaskGraph",
    "TaskRunResult",
    "UnknownTaskError",
    "action",
    "parallel",
    "series",
]
