from __future__ import annotations

import numpy as np
import pandas as pd

from .errors import InvalidInput


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, convention: str = "ACT/365") -> float:
    """
    Year fraction between two dates under a day count convention.

    Supported:
    - ACT/365, ACT/365F
    - ACT/360
    - 30/360, 30/360US (US bond basis)
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    convention = convention.upper().replace(" ", "")
    if end < start:
        raise InvalidInput(f"end < start: {start=} {end=}")

    if convention in ("ACT/365", "ACT/365F"):
        return (end - start).days / 365.0

    if convention == "ACT/360":
        return (end - start).days / 360.0

    if convention in ("30/360", "30/360US"):
        y1, m1, d1 = start.year, start.month, start.day
        y2, m2, d2 = end.year, end.month, end.day

        if d1 == 31:
            d1 = 30
        if d2 == 31 and d1 == 30:
            d2 = 30

        return ((y2 - y1) * 360 + (m2 - m1) * 30 + (d2 - d1)) / 360.0

    raise InvalidInput(f"Unsupported day count convention: {convention}")


def payment_times(total_periods: int, payments_per_year: int) -> np.ndarray:
    """Payment times in years for periods 1..total_periods."""
    if total_periods < 1:
        raise InvalidInput("Need at least one full payment period.")
    return np.arange(1, total_periods + 1, dtype=float) / float(payments_per_year)


def check_probability(value: float, name: str) -> float:
    value = float(value)
    if not (0.0 < value < 1.0):
        raise InvalidInput(f"{name} must lie strictly between 0 and 1 (got {value!r}).")
    return value
