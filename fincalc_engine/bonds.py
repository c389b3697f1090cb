from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .cashflows import FlowLike, as_cashflows
from .constants import (
    BASIS_POINT,
    RATE_LOWER,
    RATE_UPPER,
    SOLVER_MAX_ITER,
    SOLVER_TOL,
    SPREAD_LOWER,
    SPREAD_UPPER,
)
from .errors import DomainError, InvalidInput, ensure_finite
from .solver import finite_lower_bound, solve
from .time_value import discount_factor, discount_factors
from .utils import payment_times


class BondVariant(str, Enum):
    FIXED = "fixed"
    ZERO = "zero"
    PERPETUAL = "perpetual"
    CALLABLE = "callable"


@dataclass(frozen=True)
class BondSpec:
    face_value: float
    coupon_rate: float          # annual, decimal
    yield_rate: float           # annual, decimal, compounded payments_per_year times
    maturity_years: float
    payments_per_year: int = 2
    variant: BondVariant = BondVariant.FIXED
    growth_rate: float = 0.0    # perpetual only: coupon growth per year
    call_price: Optional[float] = None
    call_years: Optional[float] = None

    @property
    def periodic_yield(self) -> float:
        return self.yield_rate / self.payments_per_year

    @property
    def periodic_coupon(self) -> float:
        return self.face_value * self.coupon_rate / self.payments_per_year

    @property
    def total_periods(self) -> int:
        return int(round(self.maturity_years * self.payments_per_year))


@dataclass(frozen=True)
class BondAnalytics:
    price: float
    macaulay_duration: float
    modified_duration: float
    convexity: float
    dv01: float
    current_yield: Optional[float] = None
    premium_discount: Optional[float] = None
    annual_coupon: Optional[float] = None
    total_periods: Optional[int] = None


def validate(spec: BondSpec) -> None:
    m = spec.payments_per_year
    if int(m) != m or m < 1:
        raise InvalidInput(f"payments_per_year must be an integer >= 1 (got {m!r}).")
    if spec.face_value <= 0:
        raise InvalidInput("Face value must be positive.")
    if spec.periodic_yield <= -1.0:
        raise DomainError("Periodic yield must be greater than -100%.")

    if spec.variant == BondVariant.PERPETUAL:
        return

    if spec.maturity_years <= 0:
        raise DomainError("Maturity must be positive.")
    if spec.maturity_years * m < 1.0 - 1e-9:
        raise InvalidInput("Bond must have at least one full payment period.")


def _perpetual_spread(spec: BondSpec) -> float:
    g = spec.growth_rate / spec.payments_per_year
    spread = spec.periodic_yield - g
    if spread <= 0:
        raise DomainError(
            f"Perpetual bond needs yield above its growth rate (yield={spec.yield_rate}, growth={spec.growth_rate})."
        )
    return spread


def _schedule_arrays(spec: BondSpec):
    n = spec.total_periods
    periods = np.arange(1, n + 1, dtype=float)
    cfs = np.full(n, spec.periodic_coupon, dtype=float)
    cfs[-1] += spec.face_value
    return periods, cfs


def bond_cashflows(spec: BondSpec) -> pd.DataFrame:
    """
    Coupon/principal schedule with per-period discounting.

    Zero-coupon bonds have a single row; perpetuities have no finite schedule.
    """
    validate(spec)
    if spec.variant == BondVariant.PERPETUAL:
        raise InvalidInput("Perpetual bonds have no finite cash-flow schedule.")

    m = spec.payments_per_year
    if spec.variant == BondVariant.ZERO:
        periods = np.array([spec.maturity_years * m])
        cfs = np.array([spec.face_value])
    else:
        periods, cfs = _schedule_arrays(spec)

    dfs = discount_factors(periods, spec.periodic_yield)
    out = pd.DataFrame(
        {
            "period": periods,
            "time_years": periods / m,
            "cashflow": cfs,
            "discount_factor": dfs,
        }
    )
    out["pv"] = out["cashflow"] * out["discount_factor"]
    out["weighted_time"] = out["time_years"] * out["pv"]
    return out


def price_bond(spec: BondSpec) -> float:
    """Price from yield (all variants)."""
    validate(spec)

    if spec.variant == BondVariant.PERPETUAL:
        return ensure_finite(spec.periodic_coupon / _perpetual_spread(spec), "perpetual price")

    if spec.variant == BondVariant.ZERO:
        n = spec.maturity_years * spec.payments_per_year
        return spec.face_value * discount_factor(n, spec.periodic_yield)

    # fixed and callable (callable priced to maturity)
    periods, cfs = _schedule_arrays(spec)
    return ensure_finite(np.sum(cfs * discount_factors(periods, spec.periodic_yield)), "bond price")


price_from_yield = price_bond


def _schedule_analytics(periods: np.ndarray, cfs: np.ndarray, periodic_yield: float, m: int) -> BondAnalytics:
    pvs = cfs * discount_factors(periods, periodic_yield)
    price = float(np.sum(pvs))
    if price <= 0:
        raise DomainError("Present value of the schedule is not positive; duration is undefined.")

    mac = float(np.sum((periods / m) * pvs)) / price
    mod = mac / (1.0 + periodic_yield)
    conv = float(np.sum(periods * (periods + 1.0) * pvs)) / (1.0 + periodic_yield) ** 2 / price / m**2
    dv01 = mod * price * BASIS_POINT

    return BondAnalytics(
        price=ensure_finite(price, "price"),
        macaulay_duration=ensure_finite(mac, "Macaulay duration"),
        modified_duration=ensure_finite(mod, "modified duration"),
        convexity=ensure_finite(conv, "convexity"),
        dv01=ensure_finite(dv01, "DV01"),
    )


def analyze_cashflow_schedule(
    flows: Iterable[FlowLike],
    periodic_yield: float,
    payments_per_year: int = 1,
) -> BondAnalytics:
    """Price, duration, convexity and DV01 for a raw schedule (times in years)."""
    if payments_per_year < 1:
        raise InvalidInput("payments_per_year must be >= 1.")
    if periodic_yield <= -1.0:
        raise DomainError("Periodic yield must be greater than -100%.")

    cfs = as_cashflows(flows)
    periods = np.array([c.time_years for c in cfs], dtype=float) * payments_per_year
    amounts = np.array([c.amount for c in cfs], dtype=float)
    return _schedule_analytics(periods, amounts, periodic_yield, payments_per_year)


def analyze_bond(spec: BondSpec) -> BondAnalytics:
    validate(spec)
    m = spec.payments_per_year
    y = spec.periodic_yield

    if spec.variant == BondVariant.PERPETUAL:
        spread = _perpetual_spread(spec)
        price = price_bond(spec)
        mac = (1.0 + y) / spread / m
        mod = mac / (1.0 + y)
        base = BondAnalytics(
            price=price,
            macaulay_duration=mac,
            modified_duration=mod,
            convexity=2.0 / spread**2 / m**2,
            dv01=mod * price * BASIS_POINT,
        )
        total = None
    elif spec.variant == BondVariant.ZERO:
        n = spec.maturity_years * m
        price = price_bond(spec)
        mac = float(spec.maturity_years)
        mod = mac / (1.0 + y)
        base = BondAnalytics(
            price=price,
            macaulay_duration=mac,
            modified_duration=mod,
            convexity=n * (n + 1.0) / (1.0 + y) ** 2 / m**2,
            dv01=mod * price * BASIS_POINT,
        )
        total = int(round(n))
    else:
        periods, cfs = _schedule_arrays(spec)
        base = _schedule_analytics(periods, cfs, y, m)
        total = spec.total_periods

    annual_coupon = spec.face_value * spec.coupon_rate
    return replace(
        base,
        current_yield=annual_coupon / base.price,
        premium_discount=base.price - spec.face_value,
        annual_coupon=annual_coupon,
        total_periods=total,
    )


def approximate_price_change(analytics: BondAnalytics, dy: float) -> float:
    """Second-order (duration + convexity) price change for an annual yield move dy."""
    p = analytics.price
    return -analytics.modified_duration * p * dy + 0.5 * analytics.convexity * p * dy**2


def _schedule_pv(cfs: np.ndarray, periods: np.ndarray, periodic_yield: float) -> float:
    """Sum of cfs / (1 + y)^periods; inf rather than an exception when it overflows."""
    with np.errstate(over="ignore", invalid="ignore"):
        return float(np.sum(cfs * np.power(1.0 + periodic_yield, -periods)))


def _solve_periodic_yield(cfs: np.ndarray, periods: np.ndarray, target: float, tol: float, max_iter: int) -> float:
    if target <= 0:
        raise DomainError("Price must be positive to solve for a yield.")

    def f(y: float) -> float:
        return _schedule_pv(cfs, periods, y) - target

    lower = finite_lower_bound(f, RATE_LOWER, RATE_UPPER)
    return solve(f, lower, RATE_UPPER, tol=tol, max_iter=max_iter)


def yield_from_price(spec: BondSpec, price: float, tol: float = SOLVER_TOL, max_iter: int = SOLVER_MAX_ITER) -> float:
    """Annualized yield (periodic yield x payments_per_year) that reprices the bond to `price`."""
    validate(spec)
    m = spec.payments_per_year

    if spec.variant == BondVariant.PERPETUAL:
        if price <= 0:
            raise DomainError("Price must be positive to solve for a yield.")
        return (spec.periodic_coupon / price + spec.growth_rate / m) * m

    if spec.variant == BondVariant.ZERO:
        periods = np.array([spec.maturity_years * m])
        cfs = np.array([spec.face_value])
    else:
        periods, cfs = _schedule_arrays(spec)

    return _solve_periodic_yield(cfs, periods, price, tol, max_iter) * m


def yield_to_call(spec: BondSpec, price: float, tol: float = SOLVER_TOL, max_iter: int = SOLVER_MAX_ITER) -> float:
    """Annualized yield assuming redemption at call_price after call_years."""
    validate(spec)
    if spec.variant != BondVariant.CALLABLE:
        raise InvalidInput("Yield to call only applies to callable bonds.")
    if spec.call_price is None or spec.call_years is None:
        raise InvalidInput("Callable bond needs call_price and call_years.")
    if not (0 < spec.call_years <= spec.maturity_years):
        raise InvalidInput("call_years must lie in (0, maturity_years].")

    m = spec.payments_per_year
    n_call = int(round(spec.call_years * m))
    periods = payment_times(n_call, 1)
    cfs = np.full(n_call, spec.periodic_coupon, dtype=float)
    cfs[-1] += spec.call_price

    return _solve_periodic_yield(cfs, periods, price, tol, max_iter) * m


@dataclass(frozen=True)
class SpotCurve:
    """
    Annual spot (or benchmark yield) rates by tenor in years.

    Linear interpolation between tenors, flat beyond the first and last one.
    """
    tenors: Tuple[float, ...]
    rates: Tuple[float, ...]

    def __post_init__(self):
        if len(self.tenors) == 0 or len(self.tenors) != len(self.rates):
            raise InvalidInput("Curve needs matching, non-empty tenors and rates.")
        if np.any(np.diff(np.asarray(self.tenors, dtype=float)) <= 0):
            raise InvalidInput("Curve tenors must be strictly increasing.")

    def rate(self, t):
        return np.interp(t, np.asarray(self.tenors, dtype=float), np.asarray(self.rates, dtype=float))


def _spread_schedule(spec: BondSpec) -> Tuple[np.ndarray, np.ndarray]:
    validate(spec)
    if spec.variant == BondVariant.PERPETUAL:
        raise InvalidInput("Spreads need a finite cash-flow schedule; perpetual bonds have none.")
    if spec.variant == BondVariant.ZERO:
        return np.array([spec.maturity_years * spec.payments_per_year]), np.array([spec.face_value])
    return _schedule_arrays(spec)


def price_with_z_spread(spec: BondSpec, curve: SpotCurve, z_spread: float) -> float:
    """Discount each flow at (spot(t) + z) / m per period, t in years."""
    periods, cfs = _spread_schedule(spec)
    m = spec.payments_per_year
    periodic = (curve.rate(periods / m) + z_spread) / m
    if np.any(periodic <= -1.0):
        raise DomainError("Spot rate plus spread must stay above -100% per period.")
    with np.errstate(over="ignore"):
        pv = np.sum(cfs * np.power(1.0 + periodic, -periods))
    return ensure_finite(pv, "price with Z-spread")


def z_spread(
    spec: BondSpec,
    curve: SpotCurve,
    price: float,
    tol: float = SOLVER_TOL,
    max_iter: int = SOLVER_MAX_ITER,
) -> float:
    """Constant annual spread over the spot curve that reprices the bond to `price`."""
    periods, cfs = _spread_schedule(spec)
    if price <= 0:
        raise DomainError("Price must be positive to solve for a spread.")

    m = spec.payments_per_year
    spots = curve.rate(periods / m)
    # keep every periodic discount rate above -99%
    lower = max(SPREAD_LOWER, -0.99 * m - float(np.min(spots)))
    if lower >= SPREAD_UPPER:
        raise DomainError("Spot curve leaves no room for a spread inside the search bracket.")

    def f(z: float) -> float:
        with np.errstate(over="ignore", invalid="ignore"):
            return float(np.sum(cfs * np.power(1.0 + (spots + z) / m, -periods))) - price

    lower = finite_lower_bound(f, lower, SPREAD_UPPER)
    return solve(f, lower, SPREAD_UPPER, tol=tol, max_iter=max_iter)


def i_spread(spec: BondSpec, price: float, benchmark: SpotCurve) -> float:
    """Yield to maturity minus the benchmark yield interpolated at the bond's maturity."""
    if spec.variant == BondVariant.PERPETUAL:
        raise InvalidInput("Perpetual bonds have no maturity to read the benchmark at.")
    return yield_from_price(spec, price) - float(benchmark.rate(spec.maturity_years))
