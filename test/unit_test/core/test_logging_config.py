"""Unit tests for the logging configuration module.

Tests verify the console handler level and format, optional file logging and
per-module levels.
"""

import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

import vaultmind_ai.core.logging_config as logging_config
from vaultmind_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    handler = next(
        (h for h in root_logger.handlers if type(h) is logging.StreamHandler),
        None,
    )
    assert handler is not None
    return handler


class TestSetupLogging:
    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_console_level(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False)
        assert _console_handler().level == expected_level

    @pytest.mark.parametrize(
        "fmt,expected",
        [("simple", SIMPLE_FORMAT), ("detailed", DETAILED_FORMAT), ("json", JSON_FORMAT), ("other", DETAILED_FORMAT)],
    )
    def test_formats(self, fmt, expected):
        setup_logging(log_format=fmt, enable_file=False)
        assert _console_handler().formatter._fmt == expected

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)
        stream_handlers = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
        assert len(stream_handlers) == 1

    def test_module_levels_applied(self):
        setup_logging(enable_file=False)
        for name, level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(name).level == logging.getLevelName(level)

    def test_file_logging_requires_flag(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.object(logging_config, "ENABLE_FILE_LOGGING", False), patch.object(
                logging_config, "LOG_FILE_DIR", tmp
            ):
                setup_logging(enable_file=True)
            assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)

    def test_file_logging_writes_to_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "logs"
            with patch.object(logging_config, "ENABLE_FILE_LOGGING", True), patch.object(
                logging_config, "LOG_FILE_DIR", str(target)
            ):
                setup_logging(enable_file=True)
            file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
            assert len(file_handlers) == 1
            assert (target / "vaultmind_ai.log").exists()
            for h in file_handlers:
                logging.getLogger().removeHandler(h)
                h.close()


def test_get_logger_returns_named_logger():
    logger = get_logger("vaultmind_ai.agent_core.runtime.session")
    assert logger.name == "vaultmind_ai.agent_core.runtime.session"
    assert logger is logging.getLogger("vaultmind_ai.agent_core.runtime.session")
