"""
Logger construction.

``build_logger`` returns one named logger that is handed to every component
needing it (data layer, cache, request handlers).  The root logger is left
alone so that importing the application never reconfigures the process.

When ``LOG_DIR`` is set, records are split across three rotating files the
same way operators expect to tail them:

- ``debug.log``  DEBUG only
- ``info.log``   INFO and WARNING
- ``error.log``  ERROR and above
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d %(message)s"


class _LevelRange(logging.Filter):
    """Pass records whose level lies in ``[low, high)``."""

    def __init__(self, low: int, high: int) -> None:
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno < self.high


def _file_handler(path: Path, settings: Settings, low: int, high: int) -> logging.Handler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(low)
    handler.addFilter(_LevelRange(low, high))
    return handler


def build_logger(settings: Settings, name: str | None = None) -> logging.Logger:
    """Return the application logger, attaching handlers on first use only."""
    logger = logging.getLogger(name or settings.APP_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(settings.LOG_LEVEL.upper())
    logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers += [
            _file_handler(log_dir / "debug.log", settings, logging.DEBUG, logging.INFO),
            _file_handler(log_dir / "info.log", settings, logging.INFO, logging.ERROR),
            _file_handler(log_dir / "error.log", settings, logging.ERROR, logging.CRITICAL + 1),
        ]

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
