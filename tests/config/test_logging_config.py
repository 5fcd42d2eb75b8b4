"""Tests for root logger setup."""

import logging
import threading

import pytest

import netdra.config.logging_config as logging_config
from netdra.config.logging_config import DEFAULT_FORMAT, configure_logging, get_logger


@pytest.fixture
def root(monkeypatch):
    """The root logger with its handler list and level restored afterwards.

    pytest attaches its capture handlers per phase, so tests that need a bare
    root clear the list themselves.
    """
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(logging_config, "_configured", None)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("NETDRA_LOG_FORMAT", raising=False)
    for key in ("LOG_LEVEL", "DEBUG", "NETDRA_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    level = root.level
    yield root
    root.setLevel(level)


def make_record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("netdra.test", logging.INFO, __file__, 1, message, None, None)


class TestConfigureLogging:
    def test_module_loggers_follow_root_level(self, root):
        logger = get_logger("netdra.test.follow")
        assert logger.level == logging.NOTSET

        configure_logging("WARNING")
        assert not logger.isEnabledFor(logging.INFO)

        configure_logging("debug")
        assert logger.isEnabledFor(logging.DEBUG)

    def test_installs_a_single_handler(self, root):
        root.handlers.clear()
        configure_logging("INFO")
        configure_logging("DEBUG")

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_keeps_existing_handlers(self, root):
        root.handlers.append(logging.NullHandler())
        existing = list(root.handlers)

        configure_logging("INFO")

        assert root.handlers == existing

    def test_level_from_environment(self, root, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")

        assert configure_logging() == "ERROR"
        assert root.level == logging.ERROR

    def test_get_logger_configures_once(self, root, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        get_logger("netdra.test.once")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        get_logger("netdra.test.twice")

        assert root.level == logging.WARNING


class TestFormat:
    def test_records_carry_thread_name(self, root):
        root.handlers.clear()
        configure_logging("INFO")
        formatted = []

        def emit():
            formatted.append(root.handlers[0].formatter.format(make_record()))

        worker = threading.Thread(target=emit, name="netns-worker")
        worker.start()
        worker.join()

        assert "| netns-worker |" in formatted[0]
        assert formatted[0].endswith("| netdra.test | hello")

    def test_format_override(self, root, monkeypatch):
        root.handlers.clear()
        monkeypatch.setenv("NETDRA_LOG_FORMAT", "%(levelname)s %(message)s")
        configure_logging("INFO")

        assert root.handlers[0].formatter.format(make_record()) == "INFO hello"

    def test_default_format(self, root):
        root.handlers.clear()
        configure_logging("INFO")
        assert root.handlers[0].formatter._fmt == DEFAULT_FORMAT
