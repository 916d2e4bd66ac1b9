from errors import NewtonError
from newton import NewtonSolver

CASES = [
    # id, func_str, x0, steps, expected, short_reason
    # expected: "converged", "running" (no error, not converged) or an error class name
    ("C1_sqrt2",        "x^2 - 2",          3.0,  8,  "converged",             "quadratic convergence to sqrt(2)"),
    ("C2_cubic",        "x^3 - x - 2",      1.5,  10, "converged",             "simple cubic with root ~1.521"),
    ("C3_cos",          "cos(x) - x",       1.0,  10, "converged",             "Dottie number ~0.739"),
    ("C4_exp",          "exp(x) - 3",       0.0,  12, "converged",             "root at ln(3)"),
    ("C5_recip",        "1/x",              1.0,  20, "running",               "no root, iterates double each step"),
    ("C6_cycle",        "x^3 - 2*x + 2",    0.0,  10, "running",               "classic 0 -> 1 -> 0 cycle"),
    ("C7_stationary",   "x^2",              0.0,  1,  "ZeroDerivativeError",   "guess on a horizontal tangent"),
    ("C8_flat_const",   "x - x + 5",        1.0,  1,  "ZeroDerivativeError",   "constant function"),
    ("C9_pole_guess",   "1/(x-2)",          2.0,  1,  "DomainErrorAtGuess",    "function undefined at the guess"),
    ("C10_sqrt_guess",  "sqrt(x)",          -1.0, 1,  "DomainErrorAtGuess",    "sqrt undefined for negative x"),
    ("C11_deriv_guess", "sqrt(x)",          0.0,  1,  "DomainErrorAtGuess",    "f(0)=0 but f'(0) is undefined"),
    ("C12_land_pole",   "3*x - 2 + 1/x",    1.0,  1,  "SingularityError",      "first step lands exactly on the pole at 0"),
    ("C13_log_domain",  "ln(x)",            3.0,  5,  "SingularityError",      "first step jumps to negative x"),
    ("C14_atan",        "atan(x)",          1.0,  10, "converged",             "converges for small |x0|"),
]


def run_case(case, verbose=True):
    cid, expr, x0, steps, expected, reason = case
    if verbose:
        print("----")
        print(f"Case {cid}: '{expr}'  from x0={x0}, up to {steps} steps")
        print("Expect:", expected, "-", reason)
    solver = NewtonSolver(expr)
    try:
        solver.set_initial_guess(x0)
        for _ in range(steps):
            if solver.has_converged():
                break
            solver.next_iteration()
    except NewtonError as exc:
        if verbose:
            print(f"Result: {type(exc).__name__}: {exc}")
            print(" Iterations kept:", len(solver.get_iterations()))
        return expected == type(exc).__name__

    outcome = "converged" if solver.has_converged() else "running"
    if verbose:
        print(f"Result: {outcome}")
        print(" x:", solver.current_x)
        print(" f'(x):", solver.derivative_string, f"({solver.derivative_strategy})")
        print(" Iterations (count):", len(solver.get_iterations()))
        for row in solver.get_iterations()[:3]:
            print("   ", row)
    return expected == outcome


def main():
    total = len(CASES)
    passed = 0
    for c in CASES:
        ok = run_case(c)
        print("PASS" if ok else "FAIL")
        if ok:
            passed += 1
    print("====")
    print(f"Passed {passed}/{total} cases.")


if __name__ == "__main__":
    main()
