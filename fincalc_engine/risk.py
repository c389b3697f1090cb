from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import erfinv

from .constants import CVAR_MULTIPLIERS, DEFAULT_STRESS_SCENARIOS, MC_CHUNK_SIZE, TRADING_DAYS, Z_SCORES
from .errors import DomainError, InvalidInput, ensure_finite
from .utils import check_probability


@dataclass(frozen=True)
class RiskSpec:
    expected_return: float      # annual
    volatility: float           # annual
    confidence_level: float
    horizon_days: int
    portfolio_value: float
    trading_days: int = TRADING_DAYS


@dataclass(frozen=True)
class ParametricRiskResult:
    var: float
    cvar: float
    z_score: float
    cvar_multiplier: float
    daily_return: float
    daily_volatility: float


@dataclass(frozen=True)
class MonteCarloResult:
    var: float
    cvar: float
    max_drawdown: float
    mean_terminal_value: float
    n_paths: int


@dataclass(frozen=True)
class StressScenario:
    name: str
    market_shock: float
    volatility_shock: float = 0.0


def default_stress_scenarios() -> Tuple[StressScenario, ...]:
    return tuple(StressScenario(*row) for row in DEFAULT_STRESS_SCENARIOS)


def validate(spec: RiskSpec) -> None:
    if spec.volatility <= 0:
        raise DomainError("Volatility must be positive.")
    check_probability(spec.confidence_level, "confidence_level")
    if spec.horizon_days < 1:
        raise InvalidInput("Horizon must be at least one day.")
    if spec.portfolio_value <= 0:
        raise InvalidInput("Portfolio value must be positive.")
    if spec.trading_days < 1:
        raise InvalidInput("trading_days must be >= 1.")


def z_score(confidence_level: float) -> float:
    """One-sided normal quantile; tabulated at 95% and 99%."""
    c = check_probability(confidence_level, "confidence_level")
    if c in Z_SCORES:
        return Z_SCORES[c]
    return math.sqrt(2.0) * float(erfinv(2.0 * c - 1.0))


def cvar_multiplier(confidence_level: float) -> float:
    """
    CVaR/VaR ratio. Fixed factors at 95% and 99%; elsewhere the zero-mean
    Gaussian ratio phi(z) / ((1 - c) z).
    """
    c = check_probability(confidence_level, "confidence_level")
    if c in CVAR_MULTIPLIERS:
        return CVAR_MULTIPLIERS[c]
    z = z_score(c)
    if z <= 0:
        raise DomainError("CVaR multiplier needs a confidence level above 50%.")
    return math.exp(-0.5 * z * z) / math.sqrt(2.0 * math.pi) / ((1.0 - c) * z)


def parametric_var(spec: RiskSpec) -> ParametricRiskResult:
    """
    Gaussian VaR over the horizon:
        VaR = V * (z * sigma_d * sqrt(h) - mu_d * h), floored at zero
    CVaR is VaR times the multiplier above.
    """
    validate(spec)
    mu_d = spec.expected_return / spec.trading_days
    sigma_d = spec.volatility / math.sqrt(spec.trading_days)
    z = z_score(spec.confidence_level)
    mult = cvar_multiplier(spec.confidence_level)

    h = spec.horizon_days
    var = max(spec.portfolio_value * (z * sigma_d * math.sqrt(h) - mu_d * h), 0.0)

    return ParametricRiskResult(
        var=ensure_finite(var, "VaR"),
        cvar=ensure_finite(var * mult, "CVaR"),
        z_score=z,
        cvar_multiplier=mult,
        daily_return=mu_d,
        daily_volatility=sigma_d,
    )


def _max_drawdown(paths: np.ndarray, start_value: float) -> float:
    """Worst peak-to-trough fall (fraction of peak) over all paths; paths are (n, days)."""
    start = np.full((paths.shape[0], 1), start_value)
    full = np.hstack([start, paths])
    peaks = np.maximum.accumulate(full, axis=1)
    return float(np.max(1.0 - full / peaks))


def iter_simulation_chunks(
    spec: RiskSpec,
    n_paths: int,
    rng: np.random.Generator,
    chunk_size: int = MC_CHUNK_SIZE,
) -> Iterator[Tuple[np.ndarray, float]]:
    """
    Yield (terminal_values, max_drawdown) for successive chunks of simulated paths.

    Daily log-returns r_t = (mu - sigma^2/2) dt + sigma sqrt(dt) Z. A caller can stop
    iterating at any chunk boundary to abandon the run.
    """
    validate(spec)
    if n_paths < 1:
        raise InvalidInput("n_paths must be >= 1.")
    if chunk_size < 1:
        raise InvalidInput("chunk_size must be >= 1.")
    if not isinstance(rng, np.random.Generator):
        raise InvalidInput("rng must be a seeded numpy.random.Generator.")

    dt = 1.0 / spec.trading_days
    drift = (spec.expected_return - 0.5 * spec.volatility**2) * dt
    shock = spec.volatility * math.sqrt(dt)

    done = 0
    while done < n_paths:
        n = min(chunk_size, n_paths - done)
        z = rng.standard_normal((n, spec.horizon_days))
        paths = spec.portfolio_value * np.exp(np.cumsum(drift + shock * z, axis=1))
        done += n
        yield paths[:, -1], _max_drawdown(paths, spec.portfolio_value)


def simulate_terminal_values(
    spec: RiskSpec,
    n_paths: int,
    rng: np.random.Generator,
    chunk_size: int = MC_CHUNK_SIZE,
) -> Tuple[np.ndarray, float]:
    """All terminal values and the worst drawdown across every path."""
    terminals = []
    worst = 0.0
    for chunk, dd in iter_simulation_chunks(spec, n_paths, rng, chunk_size):
        terminals.append(chunk)
        worst = max(worst, dd)
    return np.concatenate(terminals), worst


def empirical_var_cvar(terminal_values: np.ndarray, start_value: float, confidence_level: float) -> Tuple[float, float]:
    """Loss quantile and mean tail loss of a simulated terminal-value sample."""
    c = check_probability(confidence_level, "confidence_level")
    values = np.sort(np.asarray(terminal_values, dtype=float))
    if values.size == 0:
        raise InvalidInput("No simulated values.")

    cutoff = float(np.quantile(values, 1.0 - c))
    tail = values[values <= cutoff]
    var = max(start_value - cutoff, 0.0)
    cvar = max(start_value - float(tail.mean()), 0.0)
    return var, cvar


def monte_carlo_var(
    spec: RiskSpec,
    n_paths: int,
    rng: np.random.Generator,
    chunk_size: int = MC_CHUNK_SIZE,
) -> MonteCarloResult:
    terminal, worst_dd = simulate_terminal_values(spec, n_paths, rng, chunk_size)
    var, cvar = empirical_var_cvar(terminal, spec.portfolio_value, spec.confidence_level)

    return MonteCarloResult(
        var=ensure_finite(var, "Monte Carlo VaR"),
        cvar=ensure_finite(cvar, "Monte Carlo CVaR"),
        max_drawdown=worst_dd,
        mean_terminal_value=float(terminal.mean()),
        n_paths=int(terminal.size),
    )


def run_stress_test(
    spec: RiskSpec,
    scenarios: Optional[Iterable[StressScenario]] = None,
) -> pd.DataFrame:
    """
    Linear scenario P&L: loss = portfolio_value * market_shock (negative = loss).

    No repricing; the stressed return and volatility columns are informational.
    """
    validate(spec)
    scenarios: Sequence[StressScenario] = tuple(default_stress_scenarios() if scenarios is None else scenarios)
    if not scenarios:
        raise InvalidInput("Need at least one stress scenario.")

    rows = []
    for s in scenarios:
        loss = spec.portfolio_value * s.market_shock
        rows.append(
            {
                "scenario": s.name,
                "market_shock": s.market_shock,
                "volatility_shock": s.volatility_shock,
                "stressed_return": spec.expected_return + s.market_shock,
                "stressed_volatility": spec.volatility * (1.0 + s.volatility_shock),
                "portfolio_loss": loss,
                "percentage_loss": s.market_shock * 100.0,
                "stressed_value": spec.portfolio_value + loss,
            }
        )

    return pd.DataFrame(rows)
