"""
Command-line interface for the Newton's Method Project.

    newton-method "x^2 - 2" --x0 3 --steps 10
    newton-method            (prompts for f(x) and x0, then steps on Enter)
"""
import argparse
import logging
import sys
from typing import List, Optional

from errors import NewtonError
from expression import validate_expression
from newton import DEFAULT_TOLERANCE, IterationRecord, NewtonSolver, convergence_progress
import utils


def print_iterations_table(iter_list: List[IterationRecord], tolerance: float) -> None:
    if not iter_list:
        print("\n(No iterations – initial guess not set.)")
        return

    initial_fx = iter_list[0].fx

    # table header
    print("\n" + "=" * 88)
    header = ("n", "x", "f(x)", "f'(x)", "prev x", "progress")
    print(f"{header[0]:<5} {header[1]:<18} {header[2]:<18} {header[3]:<18} {header[4]:<18} {header[5]:<8}")
    print("-" * 88)

    for row in iter_list:
        prev = utils.pretty_format_number(row.prev_x, digits=12) if row.prev_x is not None else "----"
        pct = convergence_progress(row.fx, initial_fx, tolerance)
        print(f"{row.n:<5} {row.x:<18.12g} {row.fx:<18.8e} {row.f_prime_x:<18.8e} {prev:<18} {pct:>7.1%}")

    print("=" * 88)


def print_status(solver: NewtonSolver, tolerance: float) -> None:
    last = solver.get_iterations()[-1]
    if solver.has_converged(tolerance):
        print(f"\n✅ Converged after {last.n} iterations: x ≈ {last.x:.12g}  (|f(x)| = {abs(last.fx):.3e})")
    else:
        print(f"\nx{last.n} = {last.x:.12g}   f(x{last.n}) = {last.fx:.6e}   tangent: y = "
              f"{last.tangent_slope:.6g}·t + {last.tangent_intercept:.6g}")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="newton-method", description="Step through Newton's method for f(x) = 0.")
    parser.add_argument("expression", nargs="?", help="function of x, e.g. \"x^2 - 2\"")
    parser.add_argument("--x0", type=float, help="initial guess")
    parser.add_argument("--steps", type=int, help="run up to N steps without prompting")
    parser.add_argument("--tolerance", type=float, default=DEFAULT_TOLERANCE,
                        help="stop when |f(x)| falls below this (default: %(default)g)")
    parser.add_argument("--csv", metavar="PATH", help="save the iteration table as CSV")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every step")
    args = parser.parse_args(argv)
    if args.tolerance <= 0:
        parser.error("--tolerance must be positive")
    return args


def _read_guess() -> float:
    while True:
        raw = input("Enter x0: ").strip()
        try:
            return float(raw)
        except ValueError:
            print("Invalid input. Please enter a number.")


def _run_steps(solver: NewtonSolver, steps: int, tolerance: float) -> None:
    for _ in range(steps):
        if solver.has_converged(tolerance):
            break
        solver.next_iteration()


def _interactive(solver: NewtonSolver, tolerance: float) -> None:
    """Enter steps once, 'r' restarts from a new guess, 'q' quits."""
    while True:
        print_status(solver, tolerance)
        if solver.has_converged(tolerance):
            return
        cmd = input("[Enter] next step, [r] new guess, [q] quit: ").strip().lower()
        if cmd == "q":
            return
        try:
            if cmd == "r":
                solver.reset()
                solver.set_initial_guess(_read_guess())
            else:
                solver.next_iteration()
        except NewtonError as exc:
            print(f"\n❌ Error: {exc}")
            if not solver.is_initialized:
                return


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    print("Newton's Method - Numerical Project")
    func = args.expression if args.expression is not None else input("Enter f(x): ")

    check = validate_expression(func)
    if not check["valid"]:
        print(f"\n❌ Error: {check['error']}\n")
        return 1

    try:
        solver = NewtonSolver(func)
        print(f"f'(x) = {solver.derivative_string}  ({solver.derivative_strategy})")
        solver.set_initial_guess(args.x0 if args.x0 is not None else _read_guess())
    except NewtonError as exc:
        print(f"\n❌ Error: {exc}\n")
        return 1

    status = 0
    if args.steps is not None:
        try:
            _run_steps(solver, args.steps, args.tolerance)
        except NewtonError as exc:
            print(f"\n❌ Error: {exc}")
            status = 1
        print_status(solver, args.tolerance)
    else:
        _interactive(solver, args.tolerance)

    iterations = solver.get_iterations()
    print_iterations_table(iterations, args.tolerance)

    if args.csv and iterations:
        utils.ensure_dir_for_file(args.csv)
        utils.save_iterations_to_csv(iterations, args.csv)
        print(f"Saved iterations to {args.csv}")

    return status


if __name__ == "__main__":
    sys.exit(main())
