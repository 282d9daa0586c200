"""
Tests for setup_logging.
"""

import logging

import pytest

from mailbridge.core.logging_config import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_and_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "bridge.log"

    setup_logging(log_level="debug", log_file=str(log_file))
    logging.getLogger("mailbridge.test").debug("hello bridge")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2
    for handler in root.handlers:
        handler.flush()
    assert "hello bridge" in log_file.read_text(encoding="utf-8")


def test_noisy_libraries_are_quieted():
    setup_logging(log_to_console=False)

    assert logging.getLogger("googleapiclient.discovery_cache").level == logging.ERROR
    assert logging.getLogger("urllib3").level == logging.WARNING
    assert logging.getLogger().handlers == []
