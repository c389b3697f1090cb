"""
Heuristic portfolio weights.

Not a Markowitz optimizer: mean-variance mode weights assets by their (floored)
Sharpe ratios, risk-parity mode by inverse volatility, and portfolio risk
assumes zero correlation between assets.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from .constants import (
    MIN_SHARPE_SCORE,
    PORTFOLIO_CVAR95_MULTIPLIER,
    PORTFOLIO_VAR95_MULTIPLIER,
    WEIGHT_TOL,
)
from .errors import DomainError, InvalidInput, ensure_finite
from .solver import find_root


class OptimizationMethod(str, Enum):
    MEAN_VARIANCE = "meanVariance"
    RISK_PARITY = "riskParity"


@dataclass(frozen=True)
class Asset:
    name: str
    expected_return: float
    volatility: float
    min_weight: float = 0.0
    max_weight: float = 1.0


@dataclass(frozen=True)
class PortfolioResult:
    method: OptimizationMethod
    weights: Tuple[float, ...]
    portfolio_return: float
    portfolio_risk: float
    sharpe_ratio: float
    var_95: float
    cvar_95: float


def validate_assets(assets: Sequence[Asset]) -> None:
    if len(assets) == 0:
        raise InvalidInput("Need at least one asset.")

    for a in assets:
        if a.volatility <= 0:
            raise DomainError(f"{a.name}: volatility must be positive.")
        if not (0.0 <= a.min_weight <= a.max_weight <= 1.0):
            raise InvalidInput(f"{a.name}: weight bounds must satisfy 0 <= min <= max <= 1.")

    lo = sum(a.min_weight for a in assets)
    hi = sum(a.max_weight for a in assets)
    if lo > 1.0 + WEIGHT_TOL or hi < 1.0 - WEIGHT_TOL:
        raise InvalidInput(f"Infeasible weight bounds: sum(min)={lo:.6g}, sum(max)={hi:.6g}.")


def raw_scores(assets: Sequence[Asset], risk_free_rate: float, method: OptimizationMethod) -> np.ndarray:
    mu = np.array([a.expected_return for a in assets], dtype=float)
    vol = np.array([a.volatility for a in assets], dtype=float)

    if method == OptimizationMethod.MEAN_VARIANCE:
        return np.maximum((mu - risk_free_rate) / vol, MIN_SHARPE_SCORE)
    if method == OptimizationMethod.RISK_PARITY:
        return 1.0 / vol
    raise InvalidInput(f"Unknown optimization method: {method!r}")


def bounded_weights(scores: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """
    Weights proportional to scores, clamped to [lower, upper] and summing to one.

    Solves sum(clip(k * scores, lower, upper)) = 1 for the scale k. When no
    bound binds this is plain score / sum(score).
    """
    plain = scores / scores.sum()
    if np.all(plain >= lower - WEIGHT_TOL) and np.all(plain <= upper + WEIGHT_TOL):
        return plain

    def excess(k: float) -> float:
        return float(np.clip(k * scores, lower, upper).sum() - 1.0)

    k_max = float(np.max(upper / scores)) + 1.0
    res = find_root(excess, 0.0, k_max, tol=WEIGHT_TOL)

    w = np.clip(res.root * scores, lower, upper)
    return w / w.sum()


def portfolio_metrics(assets: Sequence[Asset], weights: Sequence[float], risk_free_rate: float):
    """(return, risk, sharpe, var95, cvar95) assuming zero pairwise correlation."""
    w = np.asarray(weights, dtype=float)
    mu = np.array([a.expected_return for a in assets], dtype=float)
    vol = np.array([a.volatility for a in assets], dtype=float)

    ret = float(np.dot(w, mu))
    risk = float(np.sqrt(np.sum(w**2 * vol**2)))
    if risk <= 0:
        raise DomainError("Portfolio risk is zero; Sharpe ratio undefined.")
    sharpe = (ret - risk_free_rate) / risk

    return (
        ensure_finite(ret, "portfolio return"),
        ensure_finite(risk, "portfolio risk"),
        ensure_finite(sharpe, "Sharpe ratio"),
        risk * PORTFOLIO_VAR95_MULTIPLIER,
        risk * PORTFOLIO_CVAR95_MULTIPLIER,
    )


def optimize_portfolio(
    assets: Sequence[Asset],
    risk_free_rate: float,
    method: OptimizationMethod = OptimizationMethod.MEAN_VARIANCE,
) -> PortfolioResult:
    validate_assets(assets)
    method = OptimizationMethod(method)

    lower = np.array([a.min_weight for a in assets], dtype=float)
    upper = np.array([a.max_weight for a in assets], dtype=float)
    weights = bounded_weights(raw_scores(assets, risk_free_rate, method), lower, upper)

    ret, risk, sharpe, var95, cvar95 = portfolio_metrics(assets, weights, risk_free_rate)
    return PortfolioResult(
        method=method,
        weights=tuple(float(x) for x in weights),
        portfolio_return=ret,
        portfolio_risk=risk,
        sharpe_ratio=sharpe,
        var_95=var95,
        cvar_95=cvar95,
    )


def allocation_table(assets: Sequence[Asset], result: PortfolioResult) -> pd.DataFrame:
    out = pd.DataFrame(
        {
            "asset": [a.name for a in assets],
            "weight": result.weights,
            "expected_return": [a.expected_return for a in assets],
            "volatility": [a.volatility for a in assets],
            "min_weight": [a.min_weight for a in assets],
            "max_weight": [a.max_weight for a in assets],
        }
    )
    out["return_contribution"] = out["weight"] * out["expected_return"]
    out["variance_contribution"] = (out["weight"] * out["volatility"]) ** 2
    return out
