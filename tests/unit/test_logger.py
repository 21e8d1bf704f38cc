"""Tests for logging setup and request context."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from assethub.core.config import Settings
from assethub.core.logger import (
    ROOT_LOGGER,
    RequestContextFilter,
    bind_request_context,
    configure_logging,
    reset_request_context,
)


@pytest.fixture
def root_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    saved = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[1])


def _own_handlers(logger):
    return [h for h in logger.handlers if getattr(h, "_assethub", False)]


class TestConfigureLogging:

    def test_reconfigure_replaces_handlers(self, root_logger):
        settings = Settings(log_level="debug", _env_file=None)

        configure_logging(settings)
        configure_logging(settings)

        assert len(_own_handlers(root_logger)) == 1
        assert root_logger.level == logging.DEBUG

    def test_file_handler_rotates(self, root_logger, tmp_path):
        settings = Settings(
            file_logging=True, log_dir=str(tmp_path), log_max_bytes=2048, log_backup_count=2, _env_file=None,
        )

        configure_logging(settings)

        file_handlers = [h for h in _own_handlers(root_logger) if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 2048
        assert file_handlers[0].backupCount == 2

    def test_invalid_level(self, root_logger):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(Settings(log_level="LOUD", _env_file=None))


class TestRequestContext:

    def _record(self):
        record = logging.LogRecord("assethub.test", logging.INFO, __file__, 1, "msg", None, None)
        RequestContextFilter().filter(record)
        return record

    def test_bound_context_stamped(self):
        tokens = bind_request_context("req-1", "U1")
        try:
            record = self._record()
        finally:
            reset_request_context(tokens)

        assert record.request_id == "req-1"
        assert record.user_id == "U1"

    def test_defaults_outside_request(self):
        reset_request_context(bind_request_context("req-2"))

        record = self._record()

        assert record.request_id == "-"
        assert record.user_id == "-"
