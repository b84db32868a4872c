"""Console logging for the build CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_QUIET_LOGGERS = ("watchdog", "asyncio")


def setup_logging(level: int = logging.INFO) -> None:
    """Install a single rich console handler on the root logger.

    Safe to call more than once; a previously installed rich handler is replaced.
    """

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%H:%M:%S]"))
    root.addHandler(handler)

    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
