"""Tests for utils helpers and logging functionality."""

import io
import logging

import pytest

from amm_engine.exceptions import LengthMismatch
from amm_engine.utils import (
    clamp,
    get_logger,
    is_valid_basis_points,
    require_same_length,
    timing_decorator,
)


def test_clamp():
    assert clamp(5, 0, 10) == 5
    assert clamp(-3, 0, 10) == 0
    assert clamp(42, 0, 10) == 10


@pytest.mark.parametrize(
    "value,expected",
    [(0, True), (30, True), (10_000, True), (10_001, False), (-1, False),
     ("25", True), ("abc", False), (None, False)],
)
def test_is_valid_basis_points(value, expected):
    assert is_valid_basis_points(value) is expected


def test_require_same_length():
    require_same_length("a", [1, 2], "b", [3, 4])
    with pytest.raises(LengthMismatch) as exc_info:
        require_same_length("thresholds", [1, 2, 3], "rates", [1])
    assert "thresholds has 3 entries but rates has 1" in str(exc_info.value)


def test_timing_decorator_preserves_result(caplog):
    @timing_decorator
    def double(x):
        """Double x."""
        return x * 2

    with caplog.at_level(logging.DEBUG, logger=__name__):
        assert double(21) == 42
    assert double.__name__ == "double"
    assert double.__doc__ == "Double x."
    assert any("double executed in" in record.message for record in caplog.records)


def test_get_logger_basic():
    """Test basic get_logger functionality."""
    logger = get_logger(__name__)
    assert isinstance(logger, logging.Logger)
    assert logger.name == __name__


def test_get_logger_with_level():
    """Test get_logger with custom level."""
    logger = get_logger(__name__ + ".test1", level=logging.DEBUG)
    assert logger.level == logging.DEBUG


def test_get_logger_with_extra():
    """Test get_logger with extra context."""
    logger = get_logger(__name__ + ".test2", extra={"pair": "WETH/USDC"})
    assert isinstance(logger, logging.LoggerAdapter)
    assert logger.extra == {"extra_pair": "WETH/USDC"}


def test_get_logger_structured_format():
    """Test that get_logger produces structured log format."""
    logger_name = __name__ + ".test3"
    logger = get_logger(logger_name, level=logging.INFO)

    captured_output = io.StringIO()
    original_stream = logger.handlers[0].stream
    logger.handlers[0].stream = captured_output
    try:
        logger.info("Test message")
    finally:
        logger.handlers[0].stream = original_stream

    log_output = captured_output.getvalue()
    assert "INFO" in log_output
    assert logger_name in log_output
    assert "Test message" in log_output
    assert "|" in log_output


def test_get_logger_minimal_format():
    logger = get_logger(__name__ + ".minimal", minimal=True)
    assert logger.handlers[0].formatter._fmt == "%(asctime)s | %(message)s"


def test_get_logger_no_duplicate_handlers():
    """Test that get_logger doesn't add duplicate handlers."""
    logger_name = __name__ + ".test4"

    logger1 = get_logger(logger_name)
    logger2 = get_logger(logger_name)
    assert logger1 is logger2

    handler_count = len(logger1.handlers)
    logger3 = get_logger(logger_name)
    assert len(logger3.handlers) == handler_count


def test_get_logger_level_inheritance():
    """Test logger level handling with existing loggers."""
    parent_logger = get_logger("amm_test.parent", level=logging.ERROR)
    assert parent_logger.level == logging.ERROR

    get_logger("amm_test.parent.child", level=logging.DEBUG)
    assert parent_logger.level == logging.ERROR


def test_get_logger_handler_formatter():
    """Test that logger handlers have proper formatter."""
    logger = get_logger(__name__ + ".test6")
    assert len(logger.handlers) > 0

    format_str = logger.handlers[0].formatter._fmt
    assert "%(asctime)s" in format_str
    assert "%(levelname)" in format_str
    assert "%(name)s" in format_str
    assert "%(message)s" in format_str


def test_get_logger_existing_logger_with_handlers():
    """Test behavior when logger already has handlers."""
    logger_name = __name__ + ".test8"

    existing_logger = logging.getLogger(logger_name)
    existing_logger.addHandler(logging.StreamHandler())

    new_logger = get_logger(logger_name)
    assert len(new_logger.handlers) == 1
