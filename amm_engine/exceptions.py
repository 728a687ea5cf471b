"""
Exception hierarchy for the AMM math engine.

Every failure is a caller-input error: nothing here is transient and nothing
should be retried. Degenerate-but-legal inputs (empty pools, zero-variance
series) return neutral values instead of raising.
"""

from typing import Any, Dict, Optional, Sequence


class AmmEngineError(Exception):
    """Base exception for all AMM engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AmmEngineError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(AmmEngineError):
    """Raised when validation of caller data or configuration fails."""

    pass


class MathError(AmmEngineError):
    """Base class for checked-arithmetic failures."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        operands: Optional[Sequence[int]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.operation = operation
        self.operands = tuple(operands) if operands is not None else ()


class ArithmeticOverflow(MathError):
    """Raised when a result exceeds the uint256 range."""

    pass


class ArithmeticUnderflow(MathError):
    """Raised when a result would drop below zero."""

    pass


class DivisionByZero(MathError):
    """Raised when a divisor or denominator is zero."""

    pass


class OutOfRange(AmmEngineError):
    """Raised when a tick or sqrt price falls outside its domain."""

    def __init__(
        self,
        message: str,
        value: Optional[int] = None,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.value = value
        self.lower = lower
        self.upper = upper


class InvalidTimestamp(AmmEngineError):
    """Raised when an observation time moves backwards."""

    def __init__(
        self,
        message: str,
        timestamp: Optional[int] = None,
        last_timestamp: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp


class LengthMismatch(AmmEngineError):
    """Raised when parallel arrays differ in length."""

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.expected = expected
        self.actual = actual


class SharesExceedTotal(AmmEngineError):
    """Raised when fee split shares sum above 100%."""

    def __init__(
        self,
        message: str,
        total_bps: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.total_bps = total_bps
