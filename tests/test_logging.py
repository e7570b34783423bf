"""Tests for logging utilities."""

import logging
from io import StringIO

from dualqp.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


def test_get_logger_returns_namespaced_logger():
    """get_logger prefixes foreign names with the package namespace."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "dualqp.test_module"
    assert get_logger("dualqp.solver").name == "dualqp.solver"
    assert get_logger().name == "dualqp"


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    logger1 = get_logger("test_module")
    logger2 = get_logger("test_module")
    assert logger1 is logger2
    # pytest's capture handlers subclass StreamHandler; count only ours
    own = [h for h in logger1.handlers if type(h) is logging.StreamHandler]
    assert len(own) == 1


def test_get_logger_different_modules():
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")
    assert logger1 is not logger2
    assert logger1.name != logger2.name


def test_configure_logging_redirects_output():
    logger = get_logger("test_module")
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        logger.debug("Debug message")
        output = stream.getvalue()
        assert "Debug message" in output
        assert "[DEBUG] dualqp.test_module" in output
    finally:
        configure_logging(level=logging.WARNING)


def test_configure_logging_custom_format():
    logger = get_logger("test_module")
    stream = StringIO()
    try:
        configure_logging(level=logging.INFO, format_string="%(message)s!", stream=stream)
        logger.info("hello")
        assert stream.getvalue() == "hello!\n"
    finally:
        configure_logging(level=logging.WARNING)


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")
    try:
        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG
        set_log_level("ERROR")
        assert logger.level == logging.ERROR
    finally:
        set_log_level(logging.WARNING)
    assert logger.level == logging.WARNING


def test_solver_debug_messages_are_silent_by_default():
    from dualqp import solve_qp

    stream = StringIO()
    try:
        configure_logging(level=logging.WARNING, stream=stream)
        solve_qp([[1.0]], [0.0], CI=[[1.0]], ci0=[-1.0])
        assert stream.getvalue() == ""

        configure_logging(level=logging.DEBUG, stream=stream)
        solve_qp([[1.0]], [0.0], CI=[[1.0]], ci0=[-1.0])
        assert "finished with status optimal" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    logger = get_logger("test_module")
    assert logger.propagate is False
