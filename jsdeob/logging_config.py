"""Logging helpers for console output and per-run debug traces."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "configure_logging",
    "configure_debug_file_logger",
    "close_debug_logger",
]

_COLOUR_CODES = {
    logging.DEBUG: "34",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "35",
}


class _ColourFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - trivial wrapper
        message = super().format(record)
        code = _COLOUR_CODES.get(record.levelno, "0")
        return f"\033[{code}m{message}\033[0m"


def configure_logging(verbose: bool, *, colour: bool = False) -> None:
    """Configure the root logger to write to stderr.

    Warnings and errors are always shown; ``verbose`` adds the per-pass INFO
    lines and the DEBUG rewrite traces.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_jsdeob_console", False):
            root.removeHandler(handler)
    level = logging.DEBUG if verbose else logging.WARNING
    root.setLevel(level)

    stream = logging.StreamHandler()
    stream._jsdeob_console = True  # type: ignore[attr-defined]
    formatter_cls = _ColourFormatter if colour else logging.Formatter
    stream.setFormatter(formatter_cls("%(levelname)s: %(message)s"))
    root.addHandler(stream)


def configure_debug_file_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing debug traces to ``path``.

    Any previously configured debug handlers on ``name`` are removed so repeated
    invocations replace earlier traces instead of appending to them.  The file
    is opened in text mode with UTF-8 encoding.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    close_debug_logger(logger)
    logger.setLevel(level)
    logger.propagate = False

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._jsdeob_debug_dump = True  # type: ignore[attr-defined]
    if formatter is None:
        formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def close_debug_logger(logger: logging.Logger) -> None:
    """Tear down debug handlers installed by :func:`configure_debug_file_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, "_jsdeob_debug_dump", False):
            logger.removeHandler(handler)
            handler.close()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)
