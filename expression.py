"""
Expression engine for the Newton's method visualizer

Features:
 - Parse user function strings with SymPy over a fixed vocabulary
   (trig, inverse trig, hyperbolic, log/log10/log2/ln, exp, sqrt, abs,
    ceil, floor, round, sign and the constants pi, e)
 - Compile expressions into plain float -> float callables; evaluation
   faults (division by zero, domain errors, overflow, complex results)
   come back as NaN instead of raising
 - Symbolic differentiation with a central-difference fallback:
     f'(x) ~ (f(x+h) - f(x-h)) / (2h),  h = 1e-8
 - Layered validation with messages meant for the user
"""

from typing import Any, Callable, Dict, List, NamedTuple, Tuple
import logging
import math
import numbers
import re

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication,
    parse_expr,
    standard_transformations,
)
from sympy.utilities.lambdify import implemented_function

from errors import InvalidExpressionError

logger = logging.getLogger(__name__)

NUMERICAL_STEP = 1e-8
DERIVATIVE_PLACEHOLDER = "f'(x)"

SYMBOLIC = "symbolic"
NUMERICAL = "numerical"

# functions that must be followed by an argument list
KNOWN_FUNCTIONS: Tuple[str, ...] = (
    "sin", "cos", "tan",
    "asin", "acos", "atan",
    "sinh", "cosh", "tanh",
    "asinh", "acosh", "atanh",
    "log", "log10", "log2", "ln",
    "exp", "sqrt", "abs",
    "ceil", "floor", "round", "sign",
)

X = sp.Symbol("x", real=True)


def _round_half_away(v: float) -> float:
    return math.copysign(math.floor(abs(v) + 0.5), v)


_ROUND = implemented_function("round", _round_half_away)


# ---------------- SYMPY VOCABULARY ----------------
def _sympy_locals() -> Dict[str, Any]:
    """
    Names accepted in user expressions, mapped to SymPy objects.
    Anything else becomes a free symbol and evaluates to NaN.
    """
    return {
        "x": X,
        "sin": sp.sin, "cos": sp.cos, "tan": sp.tan,
        "asin": sp.asin, "acos": sp.acos, "atan": sp.atan,
        "sinh": sp.sinh, "cosh": sp.cosh, "tanh": sp.tanh,
        "asinh": sp.asinh, "acosh": sp.acosh, "atanh": sp.atanh,
        "log": sp.log, "ln": sp.log,
        "log10": lambda a: sp.log(a, 10),
        "log2": lambda a: sp.log(a, 2),
        "exp": sp.exp, "sqrt": sp.sqrt, "abs": sp.Abs,
        "ceil": sp.ceiling, "floor": sp.floor,
        "round": _ROUND,
        "sign": sp.sign,
        "pi": sp.pi, "e": sp.E, "E": sp.E,
    }


_TRANSFORMATIONS = standard_transformations + (implicit_multiplication, convert_xor)

# derivative pieces that mean SymPy could not give a usable closed form
_UNSUPPORTED_DERIVATIVE_ATOMS = (sp.Derivative, sp.Subs, sp.DiracDelta)


# ---------------- PARSING ----------------
def preprocess_expression(expr: str) -> str:
    """
    Normalise typed input before it reaches the parser.
      ' x^2 - 2 '  -> 'x^2 - 2'
      '3×x − 1'   -> '3*x - 1'
    Exponentiation ('^') and implicit multiplication ('3x', '2(x+1)')
    are left to the parser transformations.
    """
    s = expr.strip()
    s = s.replace("−", "-").replace("×", "*").replace("÷", "/")
    s = re.sub(r"\s+", " ", s)
    return s


def parse_expression(expr: str) -> sp.Basic:
    """
    Parse a user expression into a SymPy object.
    Raises InvalidExpressionError with the parser message on failure.
    """
    processed = preprocess_expression(expr)
    if not processed:
        raise InvalidExpressionError("Invalid expression: expression is empty")
    try:
        parsed = parse_expr(processed, local_dict=_sympy_locals(), transformations=_TRANSFORMATIONS)
    except Exception as exc:
        raise InvalidExpressionError(f"Invalid expression: {exc}") from exc
    if not isinstance(parsed, sp.Basic):
        raise InvalidExpressionError(f"Invalid expression: {expr!r} is not a function of x")
    return parsed


def format_expression(parsed: sp.Basic) -> str:
    """Text form used for display; powers are written with '^'."""
    return sp.sstr(parsed).replace("**", "^")


# ---------------- COMPILING ----------------
def _as_real(raw: Any) -> float:
    if isinstance(raw, (bool, complex)):
        return math.nan
    try:
        return float(raw)
    except (TypeError, ValueError):
        return math.nan


def _lambdify(parsed: sp.Basic) -> Callable[[float], Any]:
    try:
        return sp.lambdify(X, parsed, modules="math")
    except Exception as exc:
        raise InvalidExpressionError(f"Failed to compile expression {format_expression(parsed)!r}: {exc}") from exc


def _nan_safe(raw: Callable[[float], Any]) -> Callable[[float], float]:
    def f(x: float) -> float:
        try:
            return _as_real(raw(x))
        except Exception:
            # undefined here: ZeroDivisionError, math domain ValueError, OverflowError, ...
            return math.nan

    return f


def compile_parsed(parsed: sp.Basic) -> Callable[[float], float]:
    return _nan_safe(_lambdify(parsed))


def compile_expression(expr: str) -> Callable[[float], float]:
    """
    Build a callable f(x) from a user expression.
    The callable never raises: points where f is undefined give NaN.
    Raises InvalidExpressionError if the expression cannot be parsed.
    """
    return compile_parsed(parse_expression(expr))


# ---------------- DIFFERENTIATION ----------------
class DerivativeFunction(NamedTuple):
    """
    Outcome of differentiating an expression.

    strategy is SYMBOLIC (source holds the SymPy derivative) or
    NUMERICAL (source holds the compiled base function).
    """
    func: Callable[[float], float]
    display: str
    strategy: str
    source: Any


def numerical_derivative(f: Callable[[float], float], x: float, h: float = NUMERICAL_STEP) -> float:
    """Central-difference approximation of f'(x)."""
    return (f(x + h) - f(x - h)) / (2 * h)


def _central_difference(f: Callable[[float], float]) -> Callable[[float], float]:
    def f_prime(x: float) -> float:
        return numerical_derivative(f, x)

    return f_prime


def differentiate(expr: str) -> DerivativeFunction:
    """
    Differentiate expr with respect to x.

    Tries SymPy first. If parsing, differentiation or compiling the result
    fails, the derivative is approximated numerically from f itself and the
    display text becomes the generic "f'(x)".
    """
    try:
        parsed = parse_expression(expr)
        derivative = sp.diff(parsed, X)
        if derivative.has(*_UNSUPPORTED_DERIVATIVE_ATOMS):
            raise ValueError(f"no closed form for d/dx {format_expression(parsed)}")
        func = compile_parsed(derivative)
    except Exception as exc:
        logger.warning("Symbolic derivative of %r failed (%s); using central differences", expr, exc)
        base = compile_expression(expr)
        return DerivativeFunction(_central_difference(base), DERIVATIVE_PLACEHOLDER, NUMERICAL, base)

    return DerivativeFunction(func, format_expression(derivative), SYMBOLIC, derivative)


def derivative_string(expr: str) -> str:
    try:
        return differentiate(expr).display
    except InvalidExpressionError:
        return DERIVATIVE_PLACEHOLDER


# ---------------- VALIDATION ----------------
_MISSING_ARGUMENT_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    (name, re.compile(rf"\b{name}\b(?!\s*\()", re.IGNORECASE)) for name in KNOWN_FUNCTIONS
]

# loose pre-filter, not a grammar check
_PLAUSIBLE_MATH = re.compile(r"^[\s\d.+\-*/^()x]|sin|cos|tan|log|exp|sqrt|pi|e|abs", re.IGNORECASE)

_NOT_A_FUNCTION = "Invalid expression - please enter a valid function of x"


def _sample(raw: Callable[[float], Any], x: float) -> Any:
    try:
        value = raw(x)
    except Exception:
        return math.nan
    # unknown names stay symbolic instead of raising
    if isinstance(value, sp.Basic):
        return math.nan
    return value


def validate_expression(expr: str) -> Dict[str, Any]:
    """
    Check a user expression before building a solver from it.

    Returns {"valid": True} or {"valid": False, "error": <message>}.
    Checks run in order and stop at the first failure:
      1. empty input
      2. a known function used without an argument list ("sin")
      3. loose pattern check, backed by a trial evaluation at x=1
      4. full parse
      5. evaluation at x=1, retried at x=2 when x=1 is a singularity
    """
    if expr is None or not expr.strip():
        return {"valid": False, "error": "Expression cannot be empty."}

    trimmed = expr.strip()

    for name, pattern in _MISSING_ARGUMENT_PATTERNS:
        if pattern.search(trimmed):
            return {"valid": False, "error": f'Function "{name}" requires an argument, e.g., {name}(x)'}

    if not _PLAUSIBLE_MATH.search(trimmed):
        try:
            value = compile_expression(trimmed)(1.0)
        except InvalidExpressionError:
            return {"valid": False, "error": _NOT_A_FUNCTION}
        if math.isnan(value):
            return {"valid": False, "error": _NOT_A_FUNCTION}

    try:
        parsed = parse_expression(trimmed)
        raw = _lambdify(parsed)
    except InvalidExpressionError as exc:
        return {"valid": False, "error": str(exc)}

    value = _sample(raw, 1.0)
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return {"valid": False, "error": "Expression must evaluate to a number"}
    if math.isnan(value):
        if math.isnan(_as_real(_sample(raw, 2.0))):
            return {"valid": False, "error": "Invalid expression - cannot evaluate function"}

    return {"valid": True}
