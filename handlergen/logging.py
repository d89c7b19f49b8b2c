"""Logging setup for handlergen runs.

Console output goes to stderr so ``--dry-run`` can print the generated module
on stdout without log lines mixed in.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "handlergen"
CONSOLE_FORMAT = "[handlergen] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(component: str | None = None) -> logging.Logger:
    """Return the logger for one pipeline component, e.g. ``handlergen.semantic``."""
    if not component:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Install the console sink (and optional file sink) on the handlergen logger.

    Calling it again replaces the sinks from the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    _close_handlers(root)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(sink)

    return root


def _close_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = ["configure_logging", "get_logger"]
