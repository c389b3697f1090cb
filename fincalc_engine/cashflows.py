"""
Discounted cash-flow analysis: NPV, IRR, payback and profitability index.

Every function takes a caller-ordered sequence of flows. A flow may be a CashFlow,
a ``(time_years, amount)`` pair, or a bare amount (its index is then its time).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .constants import RATE_LOWER, RATE_UPPER, SOLVER_MAX_ITER, SOLVER_TOL
from .errors import InvalidInput, NoRoot, ensure_finite
from .solver import finite_lower_bound, solve
from .time_value import discount_factors
from .utils import yearfrac


@dataclass(frozen=True)
class CashFlow:
    time_years: float
    amount: float
    label: Optional[str] = None

    def __post_init__(self):
        if self.time_years < 0:
            raise InvalidInput(f"Cash flow time cannot be negative (got {self.time_years!r}).")


FlowLike = Union[CashFlow, Tuple[float, float], float]


@dataclass(frozen=True)
class CashFlowAnalysis:
    npv: float
    irr: Optional[float]
    payback_period: Optional[float]
    discounted_payback_period: Optional[float]
    profitability_index: float


def as_cashflows(flows: Iterable[FlowLike]) -> Tuple[CashFlow, ...]:
    out = []
    for i, f in enumerate(flows):
        if isinstance(f, CashFlow):
            out.append(f)
        elif isinstance(f, (tuple, list)):
            out.append(CashFlow(float(f[0]), float(f[1])))
        else:
            out.append(CashFlow(float(i), float(f)))

    if not out:
        raise InvalidInput("Cash-flow list is empty.")
    return tuple(out)


def dated_cashflows(
    dates: Sequence[pd.Timestamp],
    amounts: Sequence[float],
    val_date: pd.Timestamp,
    day_count: str = "ACT/365",
    labels: Optional[Sequence[str]] = None,
) -> Tuple[CashFlow, ...]:
    """Convert dated amounts to year-fraction CashFlows measured from val_date."""
    if len(dates) != len(amounts):
        raise InvalidInput("dates and amounts must have the same length.")
    if labels is not None and len(labels) != len(dates):
        raise InvalidInput("labels must match dates in length.")

    val_date = pd.Timestamp(val_date)
    return as_cashflows(
        CashFlow(yearfrac(val_date, d, day_count), float(a), None if labels is None else labels[i])
        for i, (d, a) in enumerate(zip(dates, amounts))
    )


def _arrays(flows) -> Tuple[np.ndarray, np.ndarray]:
    cfs = as_cashflows(flows)
    times = np.array([c.time_years for c in cfs], dtype=float)
    amounts = np.array([c.amount for c in cfs], dtype=float)
    return times, amounts


def npv(flows: Iterable[FlowLike], rate: float) -> float:
    """Sum of CF_t / (1 + rate)^t."""
    times, amounts = _arrays(flows)
    return ensure_finite(np.sum(amounts * discount_factors(times, rate)), "NPV")


def irr(
    flows: Iterable[FlowLike],
    lower: float = RATE_LOWER,
    upper: float = RATE_UPPER,
    tol: float = SOLVER_TOL,
    max_iter: int = SOLVER_MAX_ITER,
) -> float:
    """
    Rate at which NPV is zero.

    Raises NoRoot when the flows never change sign, or when the bracket
    [lower, upper] holds no sign change of NPV.
    """
    times, amounts = _arrays(flows)

    if not (np.any(amounts > 0) and np.any(amounts < 0)):
        raise NoRoot("IRR undefined: cash flows have no sign change.")

    def f(r: float) -> float:
        with np.errstate(over="ignore", invalid="ignore"):
            return float(np.sum(amounts * np.power(1.0 + r, -times)))

    def fprime(r: float) -> float:
        with np.errstate(over="ignore", invalid="ignore"):
            return float(np.sum(-times * amounts * np.power(1.0 + r, -times - 1.0)))

    # long schedules overflow close to r = -1
    lower = finite_lower_bound(f, lower, upper)
    return solve(f, lower, upper, tol=tol, max_iter=max_iter, fprime=fprime)


def _payback(times: np.ndarray, amounts: np.ndarray) -> Optional[float]:
    cumulative = np.cumsum(amounts)
    hits = np.nonzero(cumulative >= 0)[0]
    if len(hits) == 0:
        return None

    k = int(hits[0])
    if k == 0:
        return float(times[0])

    prev = cumulative[k - 1]
    fraction = -prev / amounts[k]
    return float(times[k - 1] + fraction * (times[k] - times[k - 1]))


def payback_period(flows: Iterable[FlowLike]) -> Optional[float]:
    """First time the cumulative undiscounted flow reaches zero, interpolated; None if never."""
    times, amounts = _arrays(flows)
    return _payback(times, amounts)


def discounted_payback_period(flows: Iterable[FlowLike], rate: float) -> Optional[float]:
    times, amounts = _arrays(flows)
    return _payback(times, amounts * discount_factors(times, rate))


def profitability_index(flows: Iterable[FlowLike], rate: float) -> float:
    """PV of flows after t=0 divided by the absolute initial outlay at t=0."""
    times, amounts = _arrays(flows)

    initial = times == 0.0
    outlay = float(np.sum(amounts[initial]))
    if not np.any(initial) or outlay >= 0:
        raise InvalidInput("Profitability index needs a negative initial outlay at t=0.")

    later = ~initial
    pv_inflows = float(np.sum(amounts[later] * discount_factors(times[later], rate)))
    return ensure_finite(pv_inflows / abs(outlay), "profitability index")


def cashflow_table(flows: Iterable[FlowLike], rate: float) -> pd.DataFrame:
    """Per-flow discounting table for display or plotting."""
    cfs = as_cashflows(flows)
    times = np.array([c.time_years for c in cfs], dtype=float)
    amounts = np.array([c.amount for c in cfs], dtype=float)
    dfs = discount_factors(times, rate)

    out = pd.DataFrame(
        {
            "time_years": times,
            "amount": amounts,
            "label": [c.label for c in cfs],
            "discount_factor": dfs,
        }
    )
    out["pv"] = out["amount"] * out["discount_factor"]
    out["cumulative"] = out["amount"].cumsum()
    out["cumulative_pv"] = out["pv"].cumsum()
    return out


def analyze_cashflows(flows: Iterable[FlowLike], rate: float) -> CashFlowAnalysis:
    cfs = as_cashflows(flows)

    try:
        irr_value: Optional[float] = irr(cfs)
    except NoRoot:
        irr_value = None

    return CashFlowAnalysis(
        npv=npv(cfs, rate),
        irr=irr_value,
        payback_period=payback_period(cfs),
        discounted_payback_period=discounted_payback_period(cfs, rate),
        profitability_index=profitability_index(cfs, rate),
    )
