"""
Foundation Exceptions

Root exception classes shared across the package. Concrete errors live next
to the code that raises them and derive from the categories below.
"""


class FoundationException(Exception):
    """Base exception for the foundation package."""
    pass


class ConfigurationError(FoundationException):
    """Configuration error."""
    pass


class ArithmeticOverflowError(FoundationException):
    """Weight or amount arithmetic left its allowed range."""
    pass


class GovernanceError(FoundationException):
    """Base governance exception."""
    pass


class AuthorizationError(GovernanceError):
    """Caller is not allowed to perform the operation."""
    pass


class LifecycleError(GovernanceError):
    """Operation is invalid for the proposal's current status."""
    pass


class ValidationError(GovernanceError):
    """Malformed or out-of-range input."""
    pass


class NotFoundError(GovernanceError):
    """Referenced record does not exist."""
    pass


def checked_add(a: int, b: int, limit: int, what: str = "value") -> int:
    """Add two non-negative ints, failing closed above *limit*."""
    result = a + b
    if result > limit:
        raise ArithmeticOverflowError(f"{what} overflow: {a} + {b} > {limit}")
    return result


def checked_sub(a: int, b: int, what: str = "value") -> int:
    """Subtract, failing closed below zero."""
    if b > a:
        raise ArithmeticOverflowError(f"{what} underflow: {a} - {b} < 0")
    return a - b
