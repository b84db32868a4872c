"""Subprocess bridge for the external bundler, page generators and dev server."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_TERMINATE_GRACE_SECONDS = 2.0


class SubprocessError(RuntimeError):
    """External command failed to start or exited with a non-zero code."""

    def __init__(self, message: str, *, exit_code: int | None, spawn_failed: bool) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.spawn_failed = spawn_failed


@dataclass(slots=True)
class SubprocessResult:
    """Captured outcome of one external command."""

    args: list[str]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    spawn_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.spawn_error is None and self.exit_code == 0

    @property
    def error(self) -> SubprocessError | None:
        if self.spawn_error is not None:
            return SubprocessError(self.spawn_error, exit_code=None, spawn_failed=True)
        if self.exit_code != 0:
            return SubprocessError(
                f"Command {shlex.join(self.args)!r} exited with code {self.exit_code}",
                exit_code=self.exit_code,
                spawn_failed=False,
            )
        return None

    def check(self) -> SubprocessResult:
        """Raise ``SubprocessError`` when the command did not succeed."""

        error = self.error
        if error is not None:
            raise error
        return self


def build_args(command: str | Sequence[str]) -> list[str]:
    if isinstance(command, str):
        args = shlex.split(command, posix=os.name != "nt")
    else:
        args = [str(part) for part in command]
    if not args:
        raise ValueError("Command is empty.")
    return args


async def run_subprocess(
    command: str | Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
) -> SubprocessResult:
    """Run a command to completion, capturing and logging both output streams.

    Never raises on a non-zero exit or a failed spawn; inspect
    ``result.error`` or call ``result.check()`` instead.
    """

    args = build_args(command)
    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=process_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        result = SubprocessResult(
            args=args,
            exit_code=None,
            spawn_error=f"Command not found: {args[0]}",
        )
        logger.error("%s", result.spawn_error)
        return result
    except OSError as error:
        result = SubprocessResult(
            args=args,
            exit_code=None,
            spawn_error=f"Command {args[0]} failed to start: {error}",
        )
        logger.error("%s", result.spawn_error)
        return result

    stdout_bytes, stderr_bytes = await process.communicate()
    result = SubprocessResult(
        args=args,
        exit_code=process.returncode,
        stdout=stdout_bytes.decode("utf-8", errors="replace"),
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
    )
    _log_streams(result)
    return result


def _log_streams(result: SubprocessResult) -> None:
    head = result.args[0]
    for line in result.stdout.splitlines():
        logger.info("[%s] %s", head, line, extra={"stream": "stdout", "command": head})
    stderr_level = logging.INFO if result.exit_code == 0 else logging.WARNING
    for line in result.stderr.splitlines():
        logger.log(
            stderr_level,
            "[%s] %s",
            head,
            line,
            extra={"stream": "stderr", "command": head},
        )
    if result.exit_code != 0:
        logger.warning("%s exited with code %s", head, result.exit_code)


class DevServer:
    """Handle to a running static file server process."""

    def __init__(self, process: asyncio.subprocess.Process, *, url: str) -> None:
        self._process = process
        self.url = url

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    async def wait(self) -> int:
        return await self._process.wait()

    async def stop(self) -> None:
        if not self.running:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(self._process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
        except TimeoutError:
            try:
                self._process.kill()
            except ProcessLookupError:
                return
            await self._process.wait()
        logger.info("Dev server at %s stopped", self.url)


async def start_dev_server(
    *,
    root: Path,
    host: str,
    port: int,
    python: str = sys.executable,
) -> DevServer:
    """Start ``python -m http.server`` serving ``root`` without waiting for it."""

    args = [python, "-m", "http.server", str(port), "--bind", host, "--directory", str(root)]
    try:
        process = await asyncio.create_subprocess_exec(*args, cwd=root)
    except OSError as error:
        raise SubprocessError(
            f"Dev server failed to start: {error}",
            exit_code=None,
            spawn_failed=True,
        ) from error

    url = f"http://{host}:{port}/"
    logger.info("Dev server started at %s (pid %s)", url, process.pid)
    return DevServer(process, url=url)
