"""
Common utilities and helper functions for the AMM math engine.

This module provides centralized helpers for logging, basis point
conversion, bounds clamping and light-weight timing of engine calls.
"""

import logging
import time
from functools import wraps
from typing import Any, Dict, Optional, Sequence, Union

from .constants import BPS_DENOMINATOR
from .exceptions import LengthMismatch


# Math utilities
def clamp(value: int, min_val: int, max_val: int) -> int:
    """Clamp value between min and max bounds."""
    return max(min_val, min(value, max_val))


def is_valid_basis_points(value: Any) -> bool:
    """Check if value is valid basis points (0-10000)."""
    try:
        return 0 <= int(value) <= BPS_DENOMINATOR
    except (ValueError, TypeError):
        return False


def require_same_length(
    name_a: str, a: Sequence[Any], name_b: str, b: Sequence[Any]
) -> None:
    """Raise LengthMismatch unless two parallel sequences line up."""
    if len(a) != len(b):
        raise LengthMismatch(
            f"{name_a} has {len(a)} entries but {name_b} has {len(b)}",
            expected=len(a),
            actual=len(b),
        )


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


# Performance utilities
def timing_decorator(func):
    """Decorator to measure function execution time."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        end_time = time.perf_counter()

        logger = logging.getLogger(func.__module__)
        logger.debug(f"{func.__name__} executed in {end_time - start_time:.4f}s")
        return result

    return wrapper
