from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import pandas as pd

from .constants import MACRS_TABLES
from .errors import DomainError, InvalidInput


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "straightLine"
    DECLINING_BALANCE = "decliningBalance"
    SUM_OF_YEARS_DIGITS = "sumOfYearsDigits"
    MACRS = "macrs"


class MACRSClass(int, Enum):
    THREE_YEAR = 3
    FIVE_YEAR = 5
    SEVEN_YEAR = 7
    TEN_YEAR = 10
    FIFTEEN_YEAR = 15
    TWENTY_YEAR = 20

    @property
    def rates(self) -> Tuple[float, ...]:
        return MACRS_TABLES[self.value]


@dataclass(frozen=True)
class DepreciationSpec:
    cost: float
    salvage_value: float
    useful_life_years: float
    method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    declining_balance_rate: float = 2.0     # 2.0 = double declining balance
    macrs_class: Optional[MACRSClass] = None


@dataclass(frozen=True)
class DepreciationRow:
    period: int
    depreciation: float
    cumulative_depreciation: float
    book_value: float


@dataclass(frozen=True)
class DepreciationSchedule:
    method: DepreciationMethod
    rows: Tuple[DepreciationRow, ...]

    @property
    def total_depreciation(self) -> float:
        return self.rows[-1].cumulative_depreciation

    @property
    def final_book_value(self) -> float:
        return self.rows[-1].book_value

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(r.period, r.depreciation, r.cumulative_depreciation, r.book_value) for r in self.rows],
            columns=["period", "depreciation", "cumulative_depreciation", "book_value"],
        )


def validate(spec: DepreciationSpec) -> None:
    if spec.cost <= 0:
        raise DomainError("Asset cost must be positive.")
    if spec.salvage_value < 0:
        raise DomainError("Salvage value cannot be negative.")
    if spec.salvage_value >= spec.cost:
        raise DomainError("Salvage value must be less than cost.")

    if spec.method == DepreciationMethod.MACRS:
        if spec.macrs_class is None:
            raise InvalidInput("MACRS method needs a property class.")
        return

    if spec.useful_life_years <= 0:
        raise DomainError("Useful life must be positive.")
    if not float(spec.useful_life_years).is_integer():
        raise InvalidInput("Useful life must be a whole number of years.")
    if spec.method == DepreciationMethod.DECLINING_BALANCE and spec.declining_balance_rate <= 0:
        raise DomainError("Declining balance rate must be positive.")


def _amounts(spec: DepreciationSpec):
    life = int(spec.useful_life_years)
    base = spec.cost - spec.salvage_value

    if spec.method == DepreciationMethod.STRAIGHT_LINE:
        return [base / life] * life

    if spec.method == DepreciationMethod.SUM_OF_YEARS_DIGITS:
        sum_of_years = life * (life + 1) / 2.0
        return [(life - (year - 1)) / sum_of_years * base for year in range(1, life + 1)]

    if spec.method == DepreciationMethod.DECLINING_BALANCE:
        # no switch to straight-line: the asset can finish above salvage
        rate = spec.declining_balance_rate / life
        book = spec.cost
        out = []
        for _ in range(life):
            dep = min(book * rate, book - spec.salvage_value)
            out.append(dep)
            book -= dep
        return out

    if spec.method == DepreciationMethod.MACRS:
        # MACRS ignores salvage
        return [spec.cost * rate for rate in MACRSClass(spec.macrs_class).rates]

    raise InvalidInput(f"Unknown depreciation method: {spec.method!r}")


def depreciation_schedule(spec: DepreciationSpec) -> DepreciationSchedule:
    """
    Period-by-period schedule for periods 1..N.

    N is the useful life, except for MACRS where it is the length of the
    class table (recovery period + 1 under the half-year convention).
    """
    validate(spec)

    rows = []
    cumulative = 0.0
    for period, dep in enumerate(_amounts(spec), start=1):
        cumulative += dep
        rows.append(DepreciationRow(period, dep, cumulative, spec.cost - cumulative))

    return DepreciationSchedule(method=DepreciationMethod(spec.method), rows=tuple(rows))


def depreciation_for_year(spec: DepreciationSpec, year: int) -> DepreciationRow:
    schedule = depreciation_schedule(spec)
    if not (1 <= year <= len(schedule.rows)):
        raise InvalidInput(f"Year must be between 1 and {len(schedule.rows)} (got {year}).")
    return schedule.rows[year - 1]
