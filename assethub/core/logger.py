"""Logging setup for Asset Hub.

Every module logs through ``logging.getLogger(__name__)``; the handlers
live on the ``assethub`` logger and are installed once per process by
``configure_logging``, from the API app at import and from each Celery
worker process at start.

Records emitted while an HTTP request is being served carry its request
id and caller, bound by the request log middleware.
"""

import logging
import logging.handlers
import os
from contextvars import ContextVar
from typing import Optional, Tuple

ROOT_LOGGER = "assethub"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] [%(request_id)s user=%(user_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_request_id: ContextVar[str] = ContextVar("request_id", default="-")
_user_id: ContextVar[str] = ContextVar("user_id", default="-")


class RequestContextFilter(logging.Filter):
    """Stamps records with the request id and caller of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        record.user_id = _user_id.get()
        return True


def bind_request_context(request_id: str, user_id: Optional[str] = None) -> Tuple:
    """Bind log context for the current request. Pass the result to ``reset_request_context``."""
    return _request_id.set(request_id), _user_id.set(user_id or "-")


def reset_request_context(tokens: Tuple) -> None:
    request_token, user_token = tokens
    _request_id.reset(request_token)
    _user_id.reset(user_token)


def _parse_level(level: str) -> int:
    level_upper = (level or "").upper()
    if level_upper not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, level_upper)


def configure_logging(settings) -> logging.Logger:
    """
    Install console and optional rotating file handlers on the ``assethub`` logger.

    Calling it again replaces the handlers, so a forked worker can
    reconfigure without duplicating output.

    Args:
        settings: Application settings (log level, directory, rotation)

    Returns:
        The ``assethub`` logger

    Raises:
        ValueError: If the configured level is unknown
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_parse_level(settings.log_level))

    for handler in list(logger.handlers):
        if getattr(handler, "_assethub", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if settings.file_logging:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(settings.log_dir, f"{ROOT_LOGGER}.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        ))

    for handler in handlers:
        handler._assethub = True
        handler.setFormatter(formatter)
        handler.addFilter(RequestContextFilter())
        logger.addHandler(handler)
    return logger
