from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Application logging for demoverify.

Every engine module logs through ``logging.getLogger(__name__)``. Those
loggers are children of ``demoverify`` and reach the single stdout handler
installed here, including records emitted from the reference-load threads.

Lines read ``<LABEL> <message>`` with LABEL one of INFO|WARN|ERROR|SUMMARY
(DEBUG with --debug). In debug mode records from worker threads also carry
the thread name, e.g. ``DEBUG [reference-load_0] ...``.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "enable_debug",
    "log_summary",
    "reset_logging",
]

APP_LOGGER_NAME = "demoverify"

# between INFO (20) and WARNING (30)
SUMMARY_LEVEL = 25

_LABELS: dict[int, str] = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; optionally tags records from non-main threads."""

    def __init__(self, show_thread: bool = False) -> None:
        super().__init__()
        self.show_thread = show_thread

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        if self.show_thread and record.threadName != "MainThread":
            return f"{label} [{record.threadName}] {text}"
        return f"{label} {text}"


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Install the labeled handler on the ``demoverify`` logger.

    Safe to call repeatedly: after the first call the same logger is
    returned untouched.

    Args:
        stream: Output stream, stdout when omitted
    """
    global _configured
    if _configured is not None:
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for old in list(app_logger.handlers):
        app_logger.removeHandler(old)

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(LabeledFormatter())
    handler.setLevel(logging.INFO)
    app_logger.addHandler(handler)
    app_logger.setLevel(logging.INFO)
    # 親 (root) へ流すと二重出力になる
    app_logger.propagate = False

    _configured = app_logger
    return app_logger


def get_logger() -> logging.Logger:
    return _configured if _configured is not None else setup_logging()


def enable_debug(logger: logging.Logger) -> None:
    """Lower the logger and its handlers to DEBUG and tag worker threads."""
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)
        if isinstance(handler.formatter, LabeledFormatter):
            handler.formatter.show_thread = True


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger (tests call this between runs)."""
    global _configured
    _configured = None
