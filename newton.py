"""
Newton's method backend

Features:
 - Step-by-step solver over a user expression: one Newton iterate per request
     x_{n+1} = x_n - f(x_n) / f'(x_n)
 - Per-iteration record: f(x), f'(x), tangent line y = slope*t + intercept
 - Failure detection:
     * function / derivative undefined at the initial guess
     * horizontal tangent (|f'(x)| < 1e-12)
     * divergence (next iterate not finite)
     * next iterate landing on a singularity of f or f'
 - Convergence test on |f(x)| and a log-scale progress measure for display
"""

from typing import Callable, List, NamedTuple, Optional, Tuple
import logging
import math

from errors import (
    DivergenceError,
    DomainErrorAtGuess,
    NotInitializedError,
    SingularityError,
    ZeroDerivativeError,
)
from expression import DerivativeFunction, compile_expression, differentiate

logger = logging.getLogger(__name__)

ZERO_DERIVATIVE_TOL = 1e-12
DEFAULT_TOLERANCE = 1e-10


class IterationRecord(NamedTuple):
    n: int
    x: float
    fx: float
    f_prime_x: float
    tangent_slope: float
    tangent_intercept: float
    prev_x: Optional[float] = None


def _record(n: int, x: float, fx: float, f_prime_x: float, prev_x: Optional[float] = None) -> IterationRecord:
    # tangent at (x, fx): y = f'(x) * t + (f(x) - f'(x) * x)
    return IterationRecord(n, x, fx, f_prime_x, f_prime_x, fx - f_prime_x * x, prev_x)


def newton_step(
    f: Callable[[float], float],
    f_prime: Callable[[float], float],
    x: float
) -> Tuple[float, float, float]:
    """
    One Newton update from x.
    Returns (next_x, f(x), f'(x)); raises ZeroDerivativeError on a horizontal tangent.
    next_x is not checked for finiteness here.
    """
    fx = f(x)
    f_prime_x = f_prime(x)
    if abs(f_prime_x) < ZERO_DERIVATIVE_TOL:
        raise ZeroDerivativeError(f"Derivative is zero at x = {x}. Newton's method cannot continue.", x)
    return x - fx / f_prime_x, fx, f_prime_x


def convergence_progress(current_fx: float, initial_fx: float, target_fx: float = DEFAULT_TOLERANCE) -> float:
    """
    Map |f(x)| onto [0, 1]: 0 at the starting residual, 1 at target_fx.

    Newton's method usually shrinks |f(x)| by orders of magnitude per step,
    so the interpolation is done on log10 of the residuals.
    """
    current = abs(current_fx)
    initial = abs(initial_fx)

    if initial <= target_fx or current <= 0:
        return 1.0
    if current >= initial:
        return 0.0
    if target_fx <= 0:
        # log10(target) would be -inf
        return 0.0

    log_initial = math.log10(initial)
    log_current = math.log10(max(current, target_fx))
    log_target = math.log10(target_fx)
    return min(1.0, max(0.0, (log_initial - log_current) / (log_initial - log_target)))


class NewtonSolver:
    """
    Newton's method driven one step at a time.

    Lifecycle: construct from an expression, set_initial_guess() to start
    a session (record 0), next_iteration() to append records, reset() to
    drop the session. Each step either commits a full record or raises and
    leaves the history untouched.
    """

    def __init__(self, expression: str):
        self._expression = expression
        self._f = compile_expression(expression)
        self._derivative: DerivativeFunction = differentiate(expression)
        self._iterations: List[IterationRecord] = []
        self._current_x: Optional[float] = None

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def derivative_string(self) -> str:
        return self._derivative.display

    @property
    def derivative_strategy(self) -> str:
        """Either "symbolic" or "numerical"."""
        return self._derivative.strategy

    @property
    def current_x(self) -> Optional[float]:
        return self._current_x

    @property
    def is_initialized(self) -> bool:
        return self._current_x is not None

    def evaluate(self, x: float) -> float:
        """f(x), independent of the iteration state."""
        return self._f(x)

    def evaluate_derivative(self, x: float) -> float:
        return self._derivative.func(x)

    def set_initial_guess(self, x0: float) -> IterationRecord:
        """
        Start a new session at x0.
        Raises DomainErrorAtGuess if f or f' is undefined at x0; the
        previous session is kept in that case.
        """
        x0 = float(x0)
        fx0 = self._f(x0)
        f_prime_x0 = self._derivative.func(x0)

        if not math.isfinite(fx0):
            raise DomainErrorAtGuess(
                f"Function is undefined at x = {x0:.4f} (vertical asymptote or singularity)", x0, "function")
        if not math.isfinite(f_prime_x0):
            raise DomainErrorAtGuess(f"Derivative is undefined at x = {x0:.4f}", x0, "derivative")

        first = _record(0, x0, fx0, f_prime_x0)
        self._iterations = [first]
        self._current_x = x0
        logger.debug("Newton start: x0=%s f=%s f'=%s", x0, fx0, f_prime_x0)
        return first

    def next_iteration(self) -> IterationRecord:
        """
        Append the next Newton iterate and return its record.
        Raises NotInitializedError, ZeroDerivativeError, DivergenceError or
        SingularityError; nothing is recorded when it raises.
        """
        if self._current_x is None:
            raise NotInitializedError("Initial guess not set")

        x = self._current_x
        next_x, _, _ = newton_step(self._f, self._derivative.func, x)

        if not math.isfinite(next_x):
            raise DivergenceError("Newton's method diverged to infinity", next_x)

        next_fx = self._f(next_x)
        next_f_prime_x = self._derivative.func(next_x)

        if not math.isfinite(next_fx):
            raise SingularityError(
                f"Iteration landed on a singularity at x = {next_x:.4f}", next_x, "function")
        if not math.isfinite(next_f_prime_x):
            raise SingularityError(f"Derivative undefined at x = {next_x:.4f}", next_x, "derivative")

        record = _record(len(self._iterations), next_x, next_fx, next_f_prime_x, prev_x=self._iterations[-1].x)
        self._iterations.append(record)
        self._current_x = next_x
        logger.debug("Newton iter %s: x=%s f=%s f'=%s", record.n, next_x, next_fx, next_f_prime_x)
        return record

    def get_iterations(self) -> List[IterationRecord]:
        return list(self._iterations)

    def has_converged(self, tolerance: float = DEFAULT_TOLERANCE) -> bool:
        """
        True once a step has been taken and |f(x)| of the latest iterate is
        below tolerance. Stepping is not blocked after convergence.
        """
        if len(self._iterations) < 2:
            return False
        return abs(self._iterations[-1].fx) < tolerance

    def progress(self, target_fx: float = DEFAULT_TOLERANCE) -> float:
        """convergence_progress() of the latest iterate against record 0."""
        if not self._iterations:
            return 0.0
        return convergence_progress(self._iterations[-1].fx, self._iterations[0].fx, target_fx)

    def reset(self) -> None:
        self._iterations = []
        self._current_x = None
        logger.debug("Newton reset for %r", self._expression)
