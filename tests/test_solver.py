import math

import pytest

from fincalc_engine.errors import InvalidInput, NoRoot, NotConverged
from fincalc_engine.solver import find_root, finite_lower_bound, solve


def test_newton_root():
    root = solve(lambda x: x**2 - 2.0, 0.0, 2.0, fprime=lambda x: 2.0 * x)
    assert root == pytest.approx(math.sqrt(2.0), abs=1e-9)


def test_root_without_derivative():
    res = find_root(lambda x: math.cos(x) - x, 0.0, 1.0)
    assert abs(res.residual) <= 1e-8
    assert res.root == pytest.approx(0.7390851332, abs=1e-8)


def test_flat_derivative_falls_back_to_bisection():
    # f'(0) = 0 at the starting midpoint; Newton alone would divide by zero
    res = find_root(lambda x: x**3 - 0.001, -1.0, 1.0, fprime=lambda x: 3.0 * x**2)
    assert res.root == pytest.approx(0.1, abs=1e-6)


def test_step_outside_bracket_stays_bracketed():
    # arctan sends plain Newton far outside the bracket from the midpoint
    res = find_root(math.atan, -2.0, 10.0, fprime=lambda x: 1.0 / (1.0 + x * x))
    assert abs(res.root) < 1e-8


def test_endpoint_root():
    assert solve(lambda x: x - 1.0, 1.0, 3.0) == 1.0


def test_no_sign_change_raises():
    with pytest.raises(NoRoot):
        solve(lambda x: x * x + 1.0, -1.0, 1.0)


def test_iteration_budget_exhausted():
    with pytest.raises(NotConverged) as exc:
        find_root(lambda x: x - 0.123456789, 0.0, 1.0, tol=1e-300, max_iter=3, fprime=lambda x: 0.0)
    err = exc.value
    assert err.iterations == 3
    assert math.isfinite(err.estimate)
    assert err.residual == pytest.approx(err.estimate - 0.123456789)


def test_bad_bracket():
    with pytest.raises(InvalidInput):
        solve(lambda x: x, 1.0, 0.0)


def test_finite_lower_bound_skips_overflow():
    def f(x):
        return math.exp(-1000.0 * x) - 1.0

    lo = finite_lower_bound(f, -1.0, 1.0)
    assert -1.0 < lo < 1.0
    assert math.isfinite(f(lo))


def test_finite_lower_bound_keeps_finite_end():
    assert finite_lower_bound(lambda x: x, -0.99, 10.0) == -0.99


def test_finite_lower_bound_nowhere_finite():
    with pytest.raises(NoRoot):
        finite_lower_bound(lambda x: math.inf, 0.0, 1.0)
    with pytest.raises(InvalidInput):
        finite_lower_bound(lambda x: x, 1.0, 0.0)
