from __future__ import annotations

import copy
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "examprep"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s request_id=%(request_id)s src=%(filename)s:%(lineno)d %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set per HTTP request by the middleware in examprep.api.
REQUEST_ID: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.request_id = REQUEST_ID.get()
        return True


class ColorFormatter(logging.Formatter):
    """Console formatter that colors the level name. Plain text when color is off."""

    _RESET = "\x1b[0m"
    _COLORS = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[35m",
    }

    def __init__(self, *args, enable_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.enable_color = enable_color

    def format(self, record: logging.LogRecord) -> str:
        if not self.enable_color:
            return super().format(record)
        colored = copy.copy(record)
        color = self._COLORS.get(record.levelno, "")
        colored.levelname = f"{color}{record.levelname}{self._RESET}"
        return super().format(colored)


def _color_wanted(stream) -> bool:
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _level_number(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _attach(logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    logger.addHandler(handler)


def configure_logging(
    *,
    log_dir: str | Path | None = None,
    log_file: str = "exam-prep.log",
    level: str | None = None,
) -> logging.Logger:
    """
    Return the service logger, setting it up on first use.

    Writes to a rotating file in settings.log_dir and to stdout. LOG_LEVEL in the
    environment wins over the configured level. Every module calls this at import.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_configured", False):
        return logger

    from examprep.config import settings

    directory = Path(log_dir or settings.log_dir)
    numeric_level = _level_number(os.getenv("LOG_LEVEL", level or settings.log_level))
    logger.setLevel(numeric_level)
    logger.propagate = False

    directory.mkdir(parents=True, exist_ok=True)
    _attach(
        logger,
        RotatingFileHandler(directory / log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"),
        logging.Formatter(LOG_FORMAT, DATE_FORMAT),
        numeric_level,
    )
    _attach(
        logger,
        logging.StreamHandler(sys.stdout),
        ColorFormatter(LOG_FORMAT, DATE_FORMAT, enable_color=_color_wanted(sys.stdout)),
        numeric_level,
    )

    logger._configured = True  # type: ignore[attr-defined]
    return logger


def set_request_id(request_id: Optional[str] = None) -> str:
    rid = request_id or uuid.uuid4().hex
    REQUEST_ID.set(rid)
    return rid


def clear_request_id() -> None:
    REQUEST_ID.set("-")


class log_request:
    """
    Time a unit of work and log how it ended:

        with log_request(logger, f"submit_attempt {attempt_id}"):
            ...

    Exceptions propagate; they are logged by class name only.
    """

    def __init__(self, logger: logging.Logger, name: str):
        self.logger = logger
        self.name = name
        self.started = 0.0

    def __enter__(self):
        self.started = time.perf_counter()
        self.logger.debug("begin %s", self.name)
        return self

    def __exit__(self, exc_type, exc, tb):
        elapsed_ms = round((time.perf_counter() - self.started) * 1000)
        if exc_type is None:
            self.logger.info("%s done elapsed_ms=%s", self.name, elapsed_ms)
        else:
            self.logger.warning("%s raised %s elapsed_ms=%s", self.name, exc_type.__name__, elapsed_ms)
        return False
