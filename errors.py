"""
Error types raised by the Newton's method engine.

Every error carries a message that can be shown to the user as-is.
None of them is fatal: a new expression, a new guess or a reset recovers.
"""

from typing import Optional


class NewtonError(Exception):
    """Base class for all engine errors."""


class InvalidExpressionError(NewtonError, ValueError):
    """The expression could not be parsed or compiled."""


class NotInitializedError(NewtonError, RuntimeError):
    """A step was requested before an initial guess was set."""


class DomainErrorAtGuess(NewtonError, ValueError):
    """The function or its derivative is undefined at the initial guess."""

    def __init__(self, message: str, x: float, which: str):
        super().__init__(message)
        self.x = x
        self.which = which  # "function" or "derivative"


class ZeroDerivativeError(NewtonError, ArithmeticError):
    """Horizontal tangent at the current iterate."""

    def __init__(self, message: str, x: float):
        super().__init__(message)
        self.x = x


class DivergenceError(NewtonError, ArithmeticError):
    """The next iterate is not a finite number."""

    def __init__(self, message: str, x: Optional[float] = None):
        super().__init__(message)
        self.x = x


class SingularityError(NewtonError, ArithmeticError):
    """The next iterate is finite but lands where f or f' is undefined."""

    def __init__(self, message: str, x: float, which: str):
        super().__init__(message)
        self.x = x
        self.which = which
