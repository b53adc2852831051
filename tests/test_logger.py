"""Tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from automodcord.util import logger as logger_module
from automodcord.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    ColorFormatter,
    PromptToolkitHandler,
    get_logger,
    handle_exception,
    should_use_color,
)


def make_record(level=logging.INFO, msg="hello"):
    return logging.LogRecord("test", level, "test.py", 10, msg, (), None, func="test_func")


@patch("sys.stderr.isatty")
def test_should_use_color_follows_tty(mock_isatty):
    mock_isatty.return_value = True
    assert should_use_color() is True
    mock_isatty.return_value = False
    assert should_use_color() is False


@patch("sys.stderr.isatty")
def test_should_use_color_exception(mock_isatty):
    mock_isatty.side_effect = Exception("Error")
    assert should_use_color() is False


def test_color_formatter_wraps_message_in_level_color():
    formatted = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT).format(make_record(logging.WARNING))
    assert formatted.startswith("\033[33m")
    assert formatted.endswith("\033[0m")
    assert "hello" in formatted


def test_get_logger_configures_handlers_once(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_module, "LOG_FILEPATH", tmp_path / "session.log")

    first = get_logger("automodcord.test_logger")
    second = get_logger("automodcord.test_logger")

    assert first is second
    assert len(first.handlers) == 2
    assert any(isinstance(h, PromptToolkitHandler) for h in first.handlers)
    assert any(isinstance(h, RotatingFileHandler) for h in first.handlers)
    assert first.propagate is False
    for handler in first.handlers:
        handler.close()
    first.handlers.clear()


def test_handle_exception_logs_errors():
    with patch.object(logging, "error") as mock_error:
        try:
            raise ValueError("bad")
        except ValueError as exc:
            handle_exception(ValueError, exc, exc.__traceback__)
    mock_error.assert_called_once()


def test_handle_exception_passes_keyboard_interrupt_through():
    with patch("sys.__excepthook__") as mock_hook:
        handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)
    mock_hook.assert_called_once()
