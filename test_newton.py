"""
Unit tests for newton.py

Solver lifecycle, iteration records, failure modes and convergence progress.
"""

import math

import pytest

from errors import (
    DivergenceError,
    DomainErrorAtGuess,
    InvalidExpressionError,
    NotInitializedError,
    SingularityError,
    ZeroDerivativeError,
)
from expression import NUMERICAL, SYMBOLIC
from newton import (
    IterationRecord,
    NewtonSolver,
    convergence_progress,
    newton_step,
)
from newton_testing import CASES, run_case


@pytest.mark.parametrize("case", CASES, ids=[c[0] for c in CASES])
def test_case_table(case):
    assert run_case(case, verbose=False)


def test_construct_rejects_invalid_expression():
    with pytest.raises(InvalidExpressionError):
        NewtonSolver("x +* )")


def test_initial_guess_record():
    solver = NewtonSolver("x^2 - 2")
    first = solver.set_initial_guess(3)

    assert solver.get_iterations() == [first]
    assert first.n == 0
    assert first.x == 3.0
    assert first.fx == pytest.approx(7.0)
    assert first.f_prime_x == pytest.approx(6.0)
    assert first.prev_x is None
    assert first.tangent_slope * first.x + first.tangent_intercept == pytest.approx(first.fx)
    assert solver.current_x == 3.0
    assert solver.is_initialized


def test_sqrt2_scenario():
    solver = NewtonSolver("x^2 - 2")
    solver.set_initial_guess(3.0)

    x1 = solver.next_iteration()
    assert x1.x == pytest.approx(3 - 7 / 6)
    assert x1.x == pytest.approx(1.8333, abs=1e-4)
    x2 = solver.next_iteration()
    assert x2.x == pytest.approx(1.4621, abs=1e-4)

    for _ in range(3):
        solver.next_iteration()

    assert abs(solver.get_iterations()[-1].fx) < 1e-10
    assert solver.has_converged()
    assert solver.current_x == pytest.approx(math.sqrt(2), abs=1e-8)


def test_records_are_ordered_and_linked():
    solver = NewtonSolver("cos(x) - x")
    solver.set_initial_guess(1.0)
    for _ in range(4):
        before = solver.get_iterations()
        record = solver.next_iteration()
        assert record.n == len(before)
        assert record.prev_x == before[-1].x
        assert record.tangent_slope == record.f_prime_x
        assert record.tangent_intercept == pytest.approx(record.fx - record.f_prime_x * record.x)

    iterations = solver.get_iterations()
    assert [r.n for r in iterations] == list(range(len(iterations)))
    assert solver.current_x == iterations[-1].x


def test_get_iterations_returns_a_copy():
    solver = NewtonSolver("x^2 - 2")
    solver.set_initial_guess(3.0)
    history = solver.get_iterations()
    history.append(IterationRecord(99, 0.0, 0.0, 0.0, 0.0, 0.0))
    history.clear()
    assert len(solver.get_iterations()) == 1


def test_next_iteration_before_guess():
    solver = NewtonSolver("x^2 - 2")
    with pytest.raises(NotInitializedError):
        solver.next_iteration()


def test_zero_derivative_on_first_step():
    solver = NewtonSolver("x^2")
    solver.set_initial_guess(0.0)
    with pytest.raises(ZeroDerivativeError) as info:
        solver.next_iteration()
    assert info.value.x == 0.0
    assert len(solver.get_iterations()) == 1
    assert solver.current_x == 0.0


def test_domain_error_names_function_or_derivative():
    with pytest.raises(DomainErrorAtGuess) as info:
        NewtonSolver("1/(x-2)").set_initial_guess(2.0)
    assert info.value.which == "function"
    assert "Function is undefined at x = 2.0000" in str(info.value)

    with pytest.raises(DomainErrorAtGuess) as info:
        NewtonSolver("sqrt(x)").set_initial_guess(0.0)
    assert info.value.which == "derivative"
    assert "Derivative is undefined at x = 0.0000" in str(info.value)


def test_failed_guess_keeps_previous_session():
    solver = NewtonSolver("1/(x-2)")
    solver.set_initial_guess(3.0)
    solver.next_iteration()
    with pytest.raises(DomainErrorAtGuess):
        solver.set_initial_guess(2.0)
    assert len(solver.get_iterations()) == 2


def test_singularity_at_new_iterate_is_atomic():
    solver = NewtonSolver("3*x - 2 + 1/x")
    solver.set_initial_guess(1.0)
    with pytest.raises(SingularityError) as info:
        solver.next_iteration()
    assert info.value.which == "function"
    assert info.value.x == 0.0
    assert "x = 0.0000" in str(info.value)
    assert len(solver.get_iterations()) == 1
    assert solver.current_x == 1.0


def test_singularity_in_derivative_only():
    # f(0) = -1 is fine, f'(0) is not; the first step from 1 lands on 0
    solver = NewtonSolver("x - 1 + 2*sqrt(x)")
    solver.set_initial_guess(1.0)
    with pytest.raises(SingularityError) as info:
        solver.next_iteration()
    assert info.value.which == "derivative"
    assert str(info.value).startswith("Derivative undefined at x = 0.0000")


def test_divergence_is_raised_cleanly():
    # f(0) / f'(0) overflows to inf
    solver = NewtonSolver("1e300 + 1e-10*x")
    solver.set_initial_guess(0.0)
    with pytest.raises(DivergenceError):
        solver.next_iteration()
    assert len(solver.get_iterations()) == 1
    assert solver.current_x == 0.0


def test_reciprocal_keeps_stepping_without_errors():
    solver = NewtonSolver("1/x")
    first = solver.set_initial_guess(1.0)
    assert first.fx == 1.0
    assert first.f_prime_x == -1.0
    assert solver.next_iteration().x == 2.0
    for _ in range(19):
        solver.next_iteration()
    assert not solver.has_converged()
    assert solver.current_x == 2.0 ** 20

    # f'(2**20) = -2**-40 is below the zero-derivative limit
    with pytest.raises(ZeroDerivativeError) as info:
        solver.next_iteration()
    assert info.value.x == 1048576.0
    assert len(solver.get_iterations()) == 21
    assert solver.current_x == 2.0 ** 20


def test_cubic_cycle_does_not_crash():
    solver = NewtonSolver("x^3 - 2*x + 2")
    solver.set_initial_guess(0.0)
    xs = [solver.next_iteration().x for _ in range(6)]
    assert xs == [1.0, 0.0, 1.0, 0.0, 1.0, 0.0]
    assert not solver.has_converged()


def test_has_converged_needs_two_records():
    solver = NewtonSolver("x - 1")
    assert solver.has_converged() is False
    solver.set_initial_guess(1.0)  # exact root, but no step taken yet
    for tol in (1e-10, 1.0, 1e6):
        assert solver.has_converged(tol) is False
    solver.next_iteration()
    assert solver.has_converged()


def test_stepping_after_convergence_is_allowed():
    solver = NewtonSolver("x - 1")
    solver.set_initial_guess(5.0)
    solver.next_iteration()
    assert solver.has_converged()
    record = solver.next_iteration()
    assert record.n == 2
    assert record.x == 1.0


def test_reset():
    solver = NewtonSolver("x^2 - 2")
    solver.set_initial_guess(3.0)
    solver.next_iteration()
    solver.reset()
    assert solver.get_iterations() == []
    assert solver.current_x is None
    assert not solver.is_initialized
    with pytest.raises(NotInitializedError):
        solver.next_iteration()
    solver.set_initial_guess(-3.0)
    assert solver.next_iteration().x == pytest.approx(-3 + 7 / 6)


def test_new_guess_starts_fresh_session():
    solver = NewtonSolver("x^2 - 2")
    solver.set_initial_guess(3.0)
    solver.next_iteration()
    solver.next_iteration()
    solver.set_initial_guess(1.0)
    assert len(solver.get_iterations()) == 1
    assert solver.get_iterations()[0].x == 1.0


def test_evaluate_does_not_touch_state():
    solver = NewtonSolver("x^2 - 2")
    assert solver.evaluate(2.0) == pytest.approx(2.0)
    assert math.isnan(solver.evaluate(float("nan")))
    assert solver.get_iterations() == []
    assert solver.evaluate_derivative(2.0) == pytest.approx(4.0)


def test_derivative_strategy_and_display():
    solver = NewtonSolver("x^2 - 2")
    assert solver.derivative_strategy == SYMBOLIC
    assert solver.derivative_string == "2*x"
    assert solver.expression == "x^2 - 2"

    rounded = NewtonSolver("x + round(x)")
    assert rounded.derivative_strategy == NUMERICAL
    assert rounded.derivative_string == "f'(x)"
    rounded.set_initial_guess(0.3)
    assert rounded.get_iterations()[0].f_prime_x == pytest.approx(1.0, abs=1e-6)


def test_newton_step():
    next_x, fx, f_prime_x = newton_step(lambda t: t * t - 2, lambda t: 2 * t, 3.0)
    assert (fx, f_prime_x) == (7.0, 6.0)
    assert next_x == pytest.approx(3 - 7 / 6)
    with pytest.raises(ZeroDerivativeError):
        newton_step(lambda t: 1.0, lambda t: 1e-13, 0.5)


def test_instances_are_isolated():
    a = NewtonSolver("x^2 - 2")
    b = NewtonSolver("x^2 - 2")
    a.set_initial_guess(3.0)
    a.next_iteration()
    b.set_initial_guess(1.0)
    assert len(a.get_iterations()) == 2
    assert len(b.get_iterations()) == 1


@pytest.mark.parametrize("current, initial, expected", [
    (5.0, 1e-11, 1.0),     # started below target
    (0.0, 10.0, 1.0),      # exact root
    (10.0, 10.0, 0.0),     # no improvement
    (20.0, 10.0, 0.0),     # got worse
    (1e-12, 10.0, 1.0),    # past target, clamped
    (1e-4, 1.0, 0.4),      # 4 of 10 decades
    (-1e-4, -1.0, 0.4),    # signs ignored
])
def test_convergence_progress(current, initial, expected):
    assert convergence_progress(current, initial) == pytest.approx(expected)


def test_convergence_progress_with_non_positive_target():
    assert convergence_progress(1.36, 7.0, 0.0) == 0.0
    assert convergence_progress(1.36, 7.0, -1.0) == 0.0
    assert convergence_progress(0.0, 7.0, 0.0) == 1.0
    assert convergence_progress(9.0, 7.0, 0.0) == 0.0


def test_convergence_progress_is_monotone_and_bounded():
    values = [convergence_progress(10.0 ** -k, 10.0) for k in range(-1, 14)]
    assert all(0.0 <= v <= 1.0 for v in values)
    assert values == sorted(values)


def test_solver_progress():
    solver = NewtonSolver("x^2 - 2")
    assert solver.progress() == 0.0
    solver.set_initial_guess(3.0)
    assert solver.progress() == 0.0
    while not solver.has_converged():
        solver.next_iteration()
    assert solver.progress() == 1.0
