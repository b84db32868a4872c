"""Page-generation collaborators invoked by the build."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from viewer_build.config import Settings
from viewer_build.process import run_subprocess

logger = logging.getLogger(__name__)

PageGenerator = Callable[[], Awaitable[None] | None]


@dataclass(slots=True)
class PageGenerators:
    """Zero-argument generators for the examples, GitHub and icons pages."""

    examples_page: PageGenerator
    github_page: PageGenerator
    icons_page: PageGenerator

    @classmethod
    def from_settings(cls, settings: Settings) -> PageGenerators:
        commands = settings.commands
        return cls(
            examples_page=command_generator("examples page", commands.examples_page, settings.root),
            github_page=command_generator("GitHub page", commands.github_page, settings.root),
            icons_page=command_generator("icons page", commands.icons_page, settings.root),
        )


def command_generator(label: str, command: str, cwd: Path) -> PageGenerator:
    """Generator that runs a shell command and fails on a non-zero exit."""

    async def _generate() -> None:
        if not command.strip():
            logger.info("No command configured for the %s, skipping", label)
            return
        result = await run_subprocess(command, cwd=cwd)
        result.check()

    return _generate


async def call_generator(generator: PageGenerator) -> None:
    """Invoke a sync or async generator; sync ones run in a worker thread."""

    if inspect.iscoroutinefunction(generator):
        await generator()
        return
    outcome = await asyncio.to_thread(generator)
    if inspect.isawaitable(outcome):
        await outcome
