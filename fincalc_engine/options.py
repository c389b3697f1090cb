from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np
from scipy.special import erfc

from .constants import (
    BINOMIAL_STEPS,
    DAYS_PER_YEAR,
    FD_SPOT_FRACTION,
    FD_STEP_RATE,
    FD_STEP_TIME,
    FD_STEP_VOL,
    IV_LOWER,
    IV_UPPER,
    MAX_STANDARD_DEVIATIONS,
    SOLVER_MAX_ITER,
    SOLVER_TOL,
)
from .errors import DomainError, InvalidInput, ensure_finite
from .solver import solve
from .time_value import continuous_discount_factor

SQRT_2 = math.sqrt(2.0)
SQRT_2PI = math.sqrt(2.0 * math.pi)


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


@dataclass(frozen=True)
class OptionSpec:
    spot: float
    strike: float
    time_to_expiry: float     # years
    risk_free_rate: float     # continuous
    volatility: float
    dividend_yield: float = 0.0
    option_type: OptionType = OptionType.CALL


@dataclass(frozen=True)
class Greeks:
    """Sensitivities per unit move; theta is per year of calendar time."""
    delta: float
    gamma: float
    vega: float
    theta: float
    rho: float

    @property
    def theta_daily(self) -> float:
        return self.theta / DAYS_PER_YEAR


@dataclass(frozen=True)
class OptionResult:
    price: float
    d1: float
    d2: float
    intrinsic_value: float
    time_value: float
    greeks: Greeks


def norm_cdf(x: float) -> float:
    """Standard normal CDF through the complementary error function."""
    return 0.5 * float(erfc(-x / SQRT_2))


def norm_pdf(x: float) -> float:
    return math.exp(-0.5 * x * x) / SQRT_2PI


def _clamp(x: float) -> float:
    return max(-MAX_STANDARD_DEVIATIONS, min(MAX_STANDARD_DEVIATIONS, x))


def validate(spec: OptionSpec) -> None:
    if spec.time_to_expiry <= 0:
        raise DomainError("Time to expiry must be positive.")
    if spec.volatility <= 0:
        raise DomainError("Volatility must be positive.")
    if spec.spot <= 0 or spec.strike <= 0:
        raise DomainError("Spot and strike must be positive.")


def d1_d2(spec: OptionSpec) -> Tuple[float, float]:
    validate(spec)
    s, k, t = spec.spot, spec.strike, spec.time_to_expiry
    vol_sqrt_t = spec.volatility * math.sqrt(t)
    d1 = (math.log(s / k) + (spec.risk_free_rate - spec.dividend_yield + 0.5 * spec.volatility**2) * t) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def black_scholes_price(spec: OptionSpec) -> float:
    d1, d2 = d1_d2(spec)
    d1, d2 = _clamp(d1), _clamp(d2)
    t = spec.time_to_expiry
    fwd_spot = spec.spot * continuous_discount_factor(t, spec.dividend_yield)
    pv_strike = spec.strike * continuous_discount_factor(t, spec.risk_free_rate)

    if spec.option_type == OptionType.CALL:
        price = fwd_spot * norm_cdf(d1) - pv_strike * norm_cdf(d2)
    else:
        price = pv_strike * norm_cdf(-d2) - fwd_spot * norm_cdf(-d1)

    # rounding can leave a -1e-17 on deep out-of-the-money options
    return ensure_finite(max(price, 0.0), "option price")


def analytic_greeks(spec: OptionSpec) -> Greeks:
    d1, d2 = d1_d2(spec)
    s, k, t = spec.spot, spec.strike, spec.time_to_expiry
    r, q, sigma = spec.risk_free_rate, spec.dividend_yield, spec.volatility
    sqrt_t = math.sqrt(t)

    dq = continuous_discount_factor(t, q)
    dr = continuous_discount_factor(t, r)
    pdf_d1 = norm_pdf(d1)
    n_d1, n_d2 = norm_cdf(_clamp(d1)), norm_cdf(_clamp(d2))
    n_md1, n_md2 = norm_cdf(_clamp(-d1)), norm_cdf(_clamp(-d2))

    gamma = dq * pdf_d1 / (s * sigma * sqrt_t)
    vega = s * dq * pdf_d1 * sqrt_t
    decay = -s * dq * pdf_d1 * sigma / (2.0 * sqrt_t)

    if spec.option_type == OptionType.CALL:
        delta = dq * n_d1
        theta = decay - r * k * dr * n_d2 + q * s * dq * n_d1
        rho = k * t * dr * n_d2
    else:
        delta = -dq * n_md1
        theta = decay + r * k * dr * n_md2 - q * s * dq * n_md1
        rho = -k * t * dr * n_md2

    return Greeks(
        delta=ensure_finite(delta, "delta"),
        gamma=ensure_finite(gamma, "gamma"),
        vega=ensure_finite(vega, "vega"),
        theta=ensure_finite(theta, "theta"),
        rho=ensure_finite(rho, "rho"),
    )


def numerical_greeks(spec: OptionSpec) -> Greeks:
    """
    Central finite-difference Greeks, used to cross-check analytic_greeks.

    Steps: spot 1% of S, volatility 0.01, rate 0.01, time 1/365 year.
    Vega and theta fall back to one-sided differences when the central
    stencil would need a non-positive volatility or expiry.
    """
    validate(spec)
    px = black_scholes_price
    base = px(spec)

    h = FD_SPOT_FRACTION * spec.spot
    up, down = px(replace(spec, spot=spec.spot + h)), px(replace(spec, spot=spec.spot - h))
    delta = (up - down) / (2.0 * h)
    gamma = (up - 2.0 * base + down) / h**2

    hv = FD_STEP_VOL
    if spec.volatility > hv:
        vega = (px(replace(spec, volatility=spec.volatility + hv)) - px(replace(spec, volatility=spec.volatility - hv))) / (2.0 * hv)
    else:
        vega = (px(replace(spec, volatility=spec.volatility + hv)) - base) / hv

    hr = FD_STEP_RATE
    rho = (px(replace(spec, risk_free_rate=spec.risk_free_rate + hr)) - px(replace(spec, risk_free_rate=spec.risk_free_rate - hr))) / (2.0 * hr)

    ht = FD_STEP_TIME
    t = spec.time_to_expiry
    if t > ht:
        theta = -(px(replace(spec, time_to_expiry=t + ht)) - px(replace(spec, time_to_expiry=t - ht))) / (2.0 * ht)
    else:
        theta = -(px(replace(spec, time_to_expiry=t + ht)) - base) / ht

    return Greeks(delta=delta, gamma=gamma, vega=vega, theta=theta, rho=rho)


def intrinsic_value(spec: OptionSpec) -> float:
    if spec.option_type == OptionType.CALL:
        return max(spec.spot - spec.strike, 0.0)
    return max(spec.strike - spec.spot, 0.0)


def price_option(spec: OptionSpec) -> OptionResult:
    d1, d2 = d1_d2(spec)
    price = black_scholes_price(spec)
    intrinsic = intrinsic_value(spec)
    return OptionResult(
        price=price,
        d1=d1,
        d2=d2,
        intrinsic_value=intrinsic,
        time_value=price - intrinsic,
        greeks=analytic_greeks(spec),
    )


def put_call_parity_gap(spec: OptionSpec) -> float:
    """C - P - (S e^-qT - K e^-rT); zero up to rounding."""
    call = black_scholes_price(replace(spec, option_type=OptionType.CALL))
    put = black_scholes_price(replace(spec, option_type=OptionType.PUT))
    t = spec.time_to_expiry
    forward_gap = spec.spot * continuous_discount_factor(t, spec.dividend_yield) - spec.strike * continuous_discount_factor(t, spec.risk_free_rate)
    return call - put - forward_gap


def implied_volatility(
    spec: OptionSpec,
    market_price: float,
    tol: float = SOLVER_TOL,
    max_iter: int = SOLVER_MAX_ITER,
) -> float:
    """Volatility that reproduces market_price; spec.volatility is only used for validation."""
    validate(spec)
    if market_price <= 0:
        raise DomainError("Market price must be positive.")

    def f(sigma: float) -> float:
        return black_scholes_price(replace(spec, volatility=sigma)) - market_price

    def fprime(sigma: float) -> float:
        return analytic_greeks(replace(spec, volatility=sigma)).vega

    return solve(f, IV_LOWER, IV_UPPER, tol=tol, max_iter=max_iter, fprime=fprime)


def _payoff(option_type: OptionType, s, strike: float):
    if option_type == OptionType.CALL:
        return np.maximum(s - strike, 0.0)
    return np.maximum(strike - s, 0.0)


def binomial_price(spec: OptionSpec, steps: int = BINOMIAL_STEPS, american: bool = True) -> float:
    """
    Cox-Ross-Rubinstein tree price.

    u = exp(sigma sqrt(dt)), d = 1/u, p = (exp((r - q) dt) - d) / (u - d).
    With american=True every node takes the larger of continuation and
    immediate exercise; otherwise the tree converges to black_scholes_price.
    """
    validate(spec)
    if steps < 1:
        raise InvalidInput("Binomial tree needs at least one step.")

    s, k = spec.spot, spec.strike
    r, q = spec.risk_free_rate, spec.dividend_yield
    dt = spec.time_to_expiry / steps
    u = math.exp(spec.volatility * math.sqrt(dt))
    d = 1.0 / u
    p = (math.exp((r - q) * dt) - d) / (u - d)
    if not (0.0 < p < 1.0):
        raise DomainError(f"Risk-neutral probability {p:.6g} outside (0, 1); use more steps.")
    disc = math.exp(-r * dt)

    j = np.arange(steps + 1)
    with np.errstate(over="ignore", invalid="ignore"):
        values = _payoff(spec.option_type, s * u ** (steps - j) * d**j, k)
        for i in range(steps - 1, -1, -1):
            values = disc * (p * values[:-1] + (1.0 - p) * values[1:])
            if american:
                nodes = s * u ** (i - j[: i + 1]) * d ** j[: i + 1]
                values = np.maximum(values, _payoff(spec.option_type, nodes, k))

    return ensure_finite(values[0], "binomial price")


def _terminal_cdf(spec: OptionSpec, s: float) -> float:
    """P(S_T <= s) under the risk-neutral log-normal law."""
    if s <= 0:
        return 0.0
    if math.isinf(s):
        return 1.0
    t = spec.time_to_expiry
    drift = (spec.risk_free_rate - spec.dividend_yield - 0.5 * spec.volatility**2) * t
    return norm_cdf((math.log(s / spec.spot) - drift) / (spec.volatility * math.sqrt(t)))


def breakeven(spec: OptionSpec, premium: Optional[float] = None) -> float:
    """Terminal price at which a long position recovers its premium (Black-Scholes price by default)."""
    validate(spec)
    premium = black_scholes_price(spec) if premium is None else premium
    if spec.option_type == OptionType.CALL:
        return spec.strike + premium
    return spec.strike - premium


def probability_of_profit(spec: OptionSpec, premium: Optional[float] = None) -> float:
    """Risk-neutral probability that a long position finishes beyond its breakeven."""
    level = breakeven(spec, premium)
    if spec.option_type == OptionType.CALL:
        return 1.0 - _terminal_cdf(spec, level)
    return _terminal_cdf(spec, level)


@dataclass(frozen=True)
class OptionLeg:
    option_type: OptionType
    strike: float
    quantity: float = 1.0       # negative for written options


@dataclass(frozen=True)
class StrategyResult:
    value: float                # cost to enter; negative is a net credit
    greeks: Greeks
    max_profit: float           # math.inf when unbounded
    max_loss: float             # <= 0, -math.inf when unbounded
    breakevens: Tuple[float, ...]
    probability_of_profit: float


def _expiry_pnl(legs: Tuple[OptionLeg, ...], underlying_quantity: float, value: float, s):
    pnl = underlying_quantity * np.asarray(s, dtype=float) - value
    for leg in legs:
        pnl = pnl + leg.quantity * _payoff(leg.option_type, s, leg.strike)
    return pnl


def price_strategy(
    spec: OptionSpec,
    legs: Iterable[OptionLeg],
    underlying_quantity: float = 0.0,
) -> StrategyResult:
    """
    Price a multi-leg position sharing spot, expiry, rates and volatility with `spec`.

    Each leg is priced with Black-Scholes at its own strike; `spec.strike` and
    `spec.option_type` are ignored. The expiry P&L is piecewise linear with kinks at
    the strikes, so profit bounds and breakevens are read off the kinks and the
    slope beyond the highest strike.
    """
    validate(spec)
    legs = tuple(legs)
    if not legs and underlying_quantity == 0:
        raise InvalidInput("Strategy needs at least one leg or an underlying position.")

    value = underlying_quantity * spec.spot
    delta, gamma, vega, theta, rho = float(underlying_quantity), 0.0, 0.0, 0.0, 0.0
    for leg in legs:
        leg_spec = replace(spec, option_type=OptionType(leg.option_type), strike=leg.strike)
        g = analytic_greeks(leg_spec)
        value += leg.quantity * black_scholes_price(leg_spec)
        delta += leg.quantity * g.delta
        gamma += leg.quantity * g.gamma
        vega += leg.quantity * g.vega
        theta += leg.quantity * g.theta
        rho += leg.quantity * g.rho

    knots = np.array(sorted({0.0} | {leg.strike for leg in legs}))
    pnl = _expiry_pnl(legs, underlying_quantity, value, knots)
    slope = underlying_quantity + sum(leg.quantity for leg in legs if leg.option_type == OptionType.CALL)

    max_profit = math.inf if slope > 0 else float(pnl.max())
    max_loss = -math.inf if slope < 0 else min(float(pnl.min()), 0.0)

    roots = []
    for a, b, fa, fb in zip(knots[:-1], knots[1:], pnl[:-1], pnl[1:]):
        if fa * fb < 0:
            roots.append(float(a + (b - a) * fa / (fa - fb)))
        elif fb == 0.0:
            roots.append(float(b))
    if slope != 0 and pnl[-1] * slope < 0:
        roots.append(float(knots[-1] - pnl[-1] / slope))

    pop = 0.0
    edges = [0.0] + roots + [math.inf]
    for lo, hi in zip(edges[:-1], edges[1:]):
        mid = 0.5 * (lo + hi) if math.isfinite(hi) else lo + max(lo, 1.0)
        if _expiry_pnl(legs, underlying_quantity, value, mid) > 0:
            pop += _terminal_cdf(spec, hi) - _terminal_cdf(spec, lo)

    return StrategyResult(
        value=ensure_finite(value, "strategy value"),
        greeks=Greeks(delta=delta, gamma=gamma, vega=vega, theta=theta, rho=rho),
        max_profit=max_profit,
        max_loss=max_loss,
        breakevens=tuple(roots),
        probability_of_profit=pop,
    )
