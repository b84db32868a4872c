"""Filesystem watch loop that re-runs tasks on change."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from viewer_build.files.resolver import compile_pattern

logger = logging.getLogger(__name__)

_IGNORED_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})


@dataclass(frozen=True, slots=True)
class WatchRule:
    """Path globs and the tasks to re-run when a matching path changes.

    Patterns prefixed with ``!`` exclude paths and win over inclusions.
    """

    patterns: tuple[str, ...]
    tasks: tuple[str, ...]
    _includes: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)
    _excludes: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        includes: list[re.Pattern[str]] = []
        excludes: list[re.Pattern[str]] = []
        for pattern in self.patterns:
            if pattern.startswith("!"):
                excludes.append(compile_pattern(pattern[1:]))
            else:
                includes.append(compile_pattern(pattern))
        object.__setattr__(self, "_includes", tuple(includes))
        object.__setattr__(self, "_excludes", tuple(excludes))

    def matches(self, relative_path: str) -> bool:
        normalized = relative_path.replace("\\", "/")
        if any(exclude.fullmatch(normalized) for exclude in self._excludes):
            return False
        return any(include.fullmatch(normalized) for include in self._includes)


class _RuleEventHandler(FileSystemEventHandler):
    """Forwards watchdog events matching a rule to the watch loop."""

    def __init__(self, root: Path, rule: WatchRule, notify: Callable[[str], None]) -> None:
        super().__init__()
        self._root = root
        self._rule = rule
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in _IGNORED_EVENT_TYPES:
            return
        for raw_path in (event.src_path, getattr(event, "dest_path", "")):
            relative = _relative_path(self._root, raw_path)
            if relative and self._rule.matches(relative):
                self._notify(relative)
                return


class WatchLoop:
    """Re-run a trigger whenever files matching a rule change.

    Events are debounced. Changes that arrive while a run is in progress are
    coalesced into one follow-up run; the in-flight run is never cancelled.
    """

    def __init__(
        self,
        *,
        root: Path,
        rule: WatchRule,
        trigger: Callable[[], Awaitable[None]],
        debounce_seconds: float = 0.2,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self._root = root
        self._rule = rule
        self._trigger = trigger
        self._debounce_seconds = debounce_seconds
        self._observer_factory = observer_factory
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: asyncio.Event | None = None
        self._stopping = False
        self.runs = 0

    def notify(self, relative_path: str) -> None:
        """Record a change; safe to call from the observer thread."""

        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._mark_pending, relative_path)

    def stop(self) -> None:
        self._stopping = True
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._wake)

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._pending = asyncio.Event()
        self._stopping = False

        observer = self._observer_factory()
        observer.schedule(
            _RuleEventHandler(self._root, self._rule, self.notify),
            str(self._root),
            recursive=True,
        )
        observer.start()
        logger.info("Watching %s for changes", self._root)
        try:
            while not self._stopping:
                await self._pending.wait()
                if self._stopping:
                    break
                await asyncio.sleep(self._debounce_seconds)
                if self._stopping:
                    break
                self._pending.clear()
                await self._run_trigger()
        finally:
            observer.stop()
            observer.join(timeout=5)
            self._loop = None
            logger.info("Stopped watching %s", self._root)

    async def _run_trigger(self) -> None:
        self.runs += 1
        try:
            await self._trigger()
        except Exception:  # noqa: BLE001
            logger.exception("Rebuild triggered by file change failed")

    def _mark_pending(self, relative_path: str) -> None:
        logger.info("Changed: %s", relative_path)
        if self._pending is not None:
            self._pending.set()

    def _wake(self) -> None:
        if self._pending is not None:
            self._pending.set()


def make_task_trigger(
    run_tasks: Callable[[Sequence[str]], Awaitable[bool]],
    tasks: Sequence[str],
) -> Callable[[], Awaitable[None]]:
    """Adapt a task runner into a watch trigger that logs instead of raising."""

    async def _trigger() -> None:
        if not await run_tasks(tasks):
            logger.warning("Rebuild of %s failed; still watching", ", ".join(tasks))

    return _trigger


def _relative_path(root: Path, raw_path: str | bytes) -> str:
    if not raw_path:
        return ""
    path = Path(os.fsdecode(raw_path))
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return ""
