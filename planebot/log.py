"""Logging setup: rich console output on stderr plus an optional rotating file."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "planebot"


class ContextFormatter(logging.Formatter):
    """Appends the ``plane_error`` dict passed via ``extra`` as ``key=value`` pairs."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        context = getattr(record, "plane_error", None)
        if context:
            message += " (" + " ".join(f"{key}={value}" for key, value in context.items()) + ")"
        return message


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> logging.Logger:
    """Configure the ``planebot`` logger. Safe to call more than once."""
    logger = logging.getLogger("planebot")
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    console_handler.setFormatter(ContextFormatter("%(message)s"))
    console_handler.set_name(_HANDLER_NAME)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # 10 MB per file, 5 backups
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        file_handler.setFormatter(
            ContextFormatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        file_handler.set_name(_HANDLER_NAME)
        logger.addHandler(file_handler)

    return logger
