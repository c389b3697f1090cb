from __future__ import annotations

import math

import numpy as np
import pandas as pd

from .errors import DomainError, InvalidInput, ensure_finite


def _check_rate(periodic_rate: float) -> None:
    if periodic_rate <= -1.0:
        raise DomainError(f"Periodic rate must be > -100% (got {periodic_rate!r}).")


def _growth(periodic_rate: float, t: float) -> float:
    """(1 + r)^t, with float overflow reported as a DomainError."""
    try:
        return (1.0 + periodic_rate) ** t
    except OverflowError:
        raise DomainError(f"(1 + {periodic_rate!r})^{t!r} overflows; rate or horizon out of range.") from None


def discount_factor(t: float, periodic_rate: float) -> float:
    """(1 + r)^-t with fractional t allowed."""
    _check_rate(periodic_rate)
    return ensure_finite(_growth(periodic_rate, -t), "discount factor")


def discount_factors(times, periodic_rate: float) -> np.ndarray:
    """Vectorized discount_factor over an array of times."""
    _check_rate(periodic_rate)
    with np.errstate(over="ignore"):
        dfs = np.power(1.0 + periodic_rate, -np.asarray(times, dtype=float))
    if not np.all(np.isfinite(dfs)):
        raise DomainError("Discount factor overflow; rate too close to -100%.")
    return dfs


def continuous_discount_factor(t: float, rate: float) -> float:
    """exp(-r t); used by the derivatives pricers."""
    return ensure_finite(math.exp(-rate * t), "continuous discount factor")


def annuity_factor(periodic_rate: float, n_periods: float) -> float:
    """PV of 1 paid at the end of each of n periods."""
    _check_rate(periodic_rate)
    if n_periods < 0:
        raise InvalidInput("Number of periods cannot be negative.")
    if abs(periodic_rate) < 1e-12:
        return float(n_periods)
    return ensure_finite((1.0 - _growth(periodic_rate, -n_periods)) / periodic_rate, "annuity factor")


def present_value(future_value: float, periodic_rate: float, n_periods: float, payment: float = 0.0) -> float:
    """PV of a lump sum plus a level end-of-period payment stream."""
    return future_value * discount_factor(n_periods, periodic_rate) + payment * annuity_factor(periodic_rate, n_periods)


def future_value(present: float, periodic_rate: float, n_periods: float, payment: float = 0.0) -> float:
    _check_rate(periodic_rate)
    growth = _growth(periodic_rate, n_periods)
    fv = present * growth + payment * annuity_factor(periodic_rate, n_periods) * growth
    return ensure_finite(fv, "future value")


def annuity_payment(principal: float, periodic_rate: float, n_periods: float) -> float:
    """Level payment that amortizes principal over n periods."""
    if n_periods <= 0:
        raise InvalidInput("Need at least one payment period.")
    return principal / annuity_factor(periodic_rate, n_periods)


def amortization_schedule(
    principal: float,
    annual_rate: float,
    years: float,
    payments_per_year: int = 12,
    extra_payment: float = 0.0,
) -> pd.DataFrame:
    """
    Loan amortization table.

    Columns: period, payment, principal, interest, balance.
    Extra payments shorten the schedule; the final row always closes the balance to zero.
    """
    if principal <= 0:
        raise InvalidInput("Principal must be positive.")
    if payments_per_year < 1:
        raise InvalidInput("payments_per_year must be >= 1.")
    if extra_payment < 0:
        raise InvalidInput("Extra payment cannot be negative.")

    n = int(round(years * payments_per_year))
    if n < 1:
        raise InvalidInput("Loan term shorter than one payment period.")

    r = annual_rate / payments_per_year
    level = annuity_payment(principal, r, n)
    total = level + extra_payment

    rows = []
    balance = float(principal)
    for period in range(1, n + 1):
        interest = balance * r
        principal_paid = min(total - interest, balance)
        if period == n:
            principal_paid = balance
        balance -= principal_paid
        if abs(balance) < 1e-9:
            balance = 0.0
        rows.append((period, interest + principal_paid, principal_paid, interest, balance))
        if balance == 0.0:
            break

    return pd.DataFrame(rows, columns=["period", "payment", "principal", "interest", "balance"])
