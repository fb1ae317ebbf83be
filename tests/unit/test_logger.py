"""
Unit tests for the package logger
"""

import logging

import pytest

from epigeo.logger import get_logger, setup_logger


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("epigeo")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


def test_module_loggers_are_children():
    assert get_logger("verifier").name == "epigeo.verifier"
    assert get_logger("verifier").parent is logging.getLogger("epigeo")


def test_setup_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "two_view.log"
    setup_logger(level="DEBUG", log_file=str(log_file), console=False, force=True)
    get_logger("fmat").debug("hello %d", 42)

    text = log_file.read_text(encoding="utf-8")
    assert "[DEBUG] [epigeo.fmat] hello 42" in text


def test_setup_is_idempotent_without_force():
    first = setup_logger(level="INFO", console=True, force=True)
    n = len(first.handlers)
    setup_logger(level="DEBUG")
    assert len(first.handlers) == n
    assert first.level == logging.INFO


def test_unknown_level():
    with pytest.raises(ValueError):
        setup_logger(level="LOUD", force=True)
