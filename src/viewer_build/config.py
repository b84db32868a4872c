"""Runtime configuration for the build pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(slots=True)
class OutputSettings:
    """Build output layout."""

    build_dir: str = "build"
    output_name: str = "potree"


@dataclass(slots=True)
class ServerSettings:
    """Development web server settings."""

    host: str = "localhost"
    port: int = 1234


@dataclass(slots=True)
class ExternalCommandSettings:
    """Commands for the external bundler and page-generation collaborators.

    An empty page command turns the corresponding generator into a no-op.
    """

    bundler: str = "rollup -c"
    examples_page: str = ""
    github_page: str = ""
    icons_page: str = ""


@dataclass(slots=True)
class WatchSettings:
    """Filesystem watcher settings."""

    debounce_seconds: float = 0.2


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    root: Path = Path(".")
    log_level: str = "INFO"
    output: OutputSettings = field(default_factory=OutputSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    commands: ExternalCommandSettings = field(default_factory=ExternalCommandSettings)
    watch: WatchSettings = field(default_factory=WatchSettings)

    @property
    def build_root(self) -> Path:
        return self.root / self.output.build_dir

    @property
    def output_root(self) -> Path:
        return self.build_root / self.output.output_name

    @classmethod
    def from_env(cls, root: Path | None = None) -> Settings:
        """Load settings from ``VIEWER_BUILD_*`` environment variables."""

        return cls(
            root=root or Path(os.getenv("VIEWER_BUILD_ROOT", ".")),
            log_level=os.getenv("VIEWER_BUILD_LOG_LEVEL", "INFO").strip().upper(),
            output=OutputSettings(
                build_dir=os.getenv("VIEWER_BUILD_DIR", "build"),
                output_name=os.getenv("VIEWER_BUILD_OUTPUT_NAME", "potree"),
            ),
            server=ServerSettings(
                host=os.getenv("VIEWER_BUILD_SERVER_HOST", "localhost"),
                port=_env_int("VIEWER_BUILD_SERVER_PORT", 1234),
            ),
            commands=ExternalCommandSettings(
                bundler=os.getenv("VIEWER_BUILD_BUNDLER_COMMAND", "rollup -c"),
                examples_page=os.getenv("VIEWER_BUILD_EXAMPLES_PAGE_COMMAND", ""),
                github_page=os.getenv("VIEWER_BUILD_GITHUB_PAGE_COMMAND", ""),
                icons_page=os.getenv("VIEWER_BUILD_ICONS_PAGE_COMMAND", ""),
            ),
            watch=WatchSettings(
                debounce_seconds=_env_float("VIEWER_BUILD_WATCH_DEBOUNCE_SECONDS", 0.2),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if not 1 <= self.server.port <= 65_535:
            raise ValueError("VIEWER_BUILD_SERVER_PORT must be in 1..65535.")
        if self.watch.debounce_seconds < 0:
            raise ValueError("VIEWER_BUILD_WATCH_DEBOUNCE_SECONDS must be >= 0.")
        if not self.commands.bundler.strip():
            raise ValueError("VIEWER_BUILD_BUNDLER_COMMAND must not be empty.")
        if not self.output.build_dir.strip() or not self.output.output_name.strip():
            raise ValueError("VIEWER_BUILD_DIR and VIEWER_BUILD_OUTPUT_NAME must not be empty.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid VIEWER_BUILD_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(sorted(_LOG_LEVELS))}.",
            )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {raw!r}") from error
