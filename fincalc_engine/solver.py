from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import MIN_DERIVATIVE, SOLVER_MAX_ITER, SOLVER_TOL
from .errors import InvalidInput, NoRoot, NotConverged


@dataclass(frozen=True)
class RootResult:
    root: float
    residual: float
    iterations: int


def _central_derivative(f: Callable[[float], float], x: float, fx: float, lo: float, hi: float) -> float:
    h = 1e-6 * max(1.0, abs(x))
    a, b = max(lo, x - h), min(hi, x + h)
    if b <= a:
        return 0.0
    fa = fx if a == x else f(a)
    fb = fx if b == x else f(b)
    return (fb - fa) / (b - a)


def find_root(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    tol: float = SOLVER_TOL,
    max_iter: int = SOLVER_MAX_ITER,
    fprime: Optional[Callable[[float], float]] = None,
) -> RootResult:
    """
    Safeguarded Newton-Raphson inside a sign-changing bracket.

    Each iteration tries a Newton step from the current estimate. If the derivative
    is (near) zero or the step lands outside the bracket, a bisection step is taken
    instead. The bracket [lo, hi] always keeps f(lo) and f(hi) of opposite sign.

    Raises
    ------
    NoRoot
        f(lower) and f(upper) do not bracket a root.
    NotConverged
        max_iter exhausted; carries the last estimate and residual.
    """
    if not (lower < upper):
        raise InvalidInput(f"Bracket must satisfy lower < upper ({lower=}, {upper=}).")
    if tol <= 0 or max_iter < 1:
        raise InvalidInput("tol must be positive and max_iter >= 1.")

    lo, hi = float(lower), float(upper)
    f_lo, f_hi = float(f(lo)), float(f(hi))

    if not (math.isfinite(f_lo) and math.isfinite(f_hi)):
        raise NoRoot("Function is not finite at the bracket endpoints.")
    if f_lo == 0.0:
        return RootResult(lo, 0.0, 0)
    if f_hi == 0.0:
        return RootResult(hi, 0.0, 0)
    if f_lo * f_hi > 0:
        raise NoRoot(f"Root not bracketed: f({lo})={f_lo:.6g}, f({hi})={f_hi:.6g}.")

    x = 0.5 * (lo + hi)
    fx = float(f(x))

    for it in range(1, max_iter + 1):
        if abs(fx) <= tol:
            return RootResult(x, fx, it - 1)

        # shrink bracket around the sign change
        if f_lo * fx < 0:
            hi, f_hi = x, fx
        else:
            lo, f_lo = x, fx

        if hi - lo <= tol:
            return RootResult(x, fx, it - 1)

        d = float(fprime(x)) if fprime is not None else _central_derivative(f, x, fx, lo, hi)

        x_new = None
        if math.isfinite(d) and abs(d) > MIN_DERIVATIVE:
            candidate = x - fx / d
            if lo < candidate < hi:
                x_new = candidate

        if x_new is None:
            x_new = 0.5 * (lo + hi)

        x = x_new
        fx = float(f(x))
        if not math.isfinite(fx):
            # stay inside the bracket on a finite point
            x = 0.5 * (lo + hi)
            fx = float(f(x))

    if abs(fx) <= tol:
        return RootResult(x, fx, max_iter)

    raise NotConverged(x, fx, max_iter)


def solve(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    tol: float = SOLVER_TOL,
    max_iter: int = SOLVER_MAX_ITER,
    fprime: Optional[Callable[[float], float]] = None,
) -> float:
    """Root of f in [lower, upper]; see find_root."""
    return find_root(f, lower, upper, tol=tol, max_iter=max_iter, fprime=fprime).root


def finite_lower_bound(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    max_halvings: int = 40,
) -> float:
    """
    First point of [lower, upper) where f is finite.

    Tries lower itself, then lower + (upper - lower) * 2**-k for k = max_halvings..1,
    so the returned end is the finite candidate closest to lower. Rate functions such as
    sum(cf * (1 + r)**-t) overflow near r = -1 on long schedules.
    """
    if not (lower < upper):
        raise InvalidInput(f"Bracket must satisfy lower < upper ({lower=}, {upper=}).")

    width = float(upper) - float(lower)
    candidates = [float(lower)] + [lower + width * 2.0 ** (-k) for k in range(max_halvings, 0, -1)]
    for x in candidates:
        try:
            fx = float(f(x))
        except OverflowError:
            continue
        if math.isfinite(fx):
            return x

    raise NoRoot(f"Function is not finite anywhere at any tried point of [{lower}, {upper}).")
