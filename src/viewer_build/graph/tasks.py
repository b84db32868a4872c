"""Named tasks composed in series or in parallel."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

Action = Callable[[], Awaitable[None] | None]


class CompositionMode(str, Enum):
    """How a task body is executed."""

    ACTION = "action"
    SERIES = "series"
    PARALLEL = "parallel"


class UnknownTaskError(KeyError):
    """Task name is not registered in the graph."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Task {self.name!r} is not registered"


@dataclass(frozen=True, slots=True)
class Task:
    """A unit of build work: a primitive action or a group of child tasks."""

    name: str
    mode: CompositionMode
    action: Action | None = None
    children: tuple[Task, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Task name must be non-empty.")
        if self.mode is CompositionMode.ACTION and self.action is None:
            raise ValueError(f"Action task {self.name!r} requires a callable body.")
        if self.mode is not CompositionMode.ACTION and self.action is not None:
            raise ValueError(f"Group task {self.name!r} cannot carry an action body.")


def action(name: str, body: Action, *, description: str = "") -> Task:
    return Task(name=name, mode=CompositionMode.ACTION, action=body, description=description)


def series(name: str, *children: Task, description: str = "") -> Task:
    """Children run in listed order, each after the previous one succeeds."""

    return Task(
        name=name,
        mode=CompositionMode.SERIES,
        children=tuple(children),
        description=description,
    )


def parallel(name: str, *children: Task, description: str = "") -> Task:
    """Children have no ordering constraint and may run concurrently."""

    return Task(
        name=name,
        mode=CompositionMode.PARALLEL,
        children=tuple(children),
        description=description,
    )


class TaskGraph:
    """Explicit registry of named tasks.

    Group helpers accept registered task names or ``Task`` objects, so a task
    can only reference tasks that already exist and the graph stays acyclic.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def register(self, task: Task) -> Task:
        if task.name in self._tasks:
            raise ValueError(f"Task {task.name!r} is already registered")
        self._tasks[task.name] = task
        return task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name) from None

    def names(self) -> list[str]:
        return list(self._tasks)

    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def action(self, name: str, body: Action, *, description: str = "") -> Task:
        return self.register(action(name, body, description=description))

    def series(self, name: str, *children: Task | str, description: str = "") -> Task:
        return self.register(series(name, *self._lookup(children), description=description))

    def parallel(self, name: str, *children: Task | str, description: str = "") -> Task:
        return self.register(parallel(name, *self._lookup(children), description=description))

    def ref(self, *children: Task | str) -> tuple[Task, ...]:
        """Resolve names of registered tasks for use in unregistered groups."""

        return self._lookup(children)

    def _lookup(self, children: tuple[Task | str, ...]) -> tuple[Task, ...]:
        return tuple(self.get(child) if isinstance(child, str) else child for child in children)
