from __future__ import annotations

from dataclasses import replace
from typing import Iterable

import pandas as pd

from .bonds import BondSpec, analyze_bond, approximate_price_change, price_bond
from .options import OptionSpec, analytic_greeks, black_scholes_price


def bond_yield_sweep(spec: BondSpec, shifts_bp: Iterable[float] = (-100, -50, -25, 0, 25, 50, 100)) -> pd.DataFrame:
    """
    Reprice at shifted yields and compare with the duration/convexity estimate.

    Every point is an independent call on a copied spec.
    """
    base = analyze_bond(spec)

    rows = []
    for bp in shifts_bp:
        dy = bp / 10000.0
        shocked = price_bond(replace(spec, yield_rate=spec.yield_rate + dy))
        estimate = base.price + approximate_price_change(base, dy)
        rows.append(
            {
                "shift_bp": bp,
                "yield": spec.yield_rate + dy,
                "price": shocked,
                "price_change": shocked - base.price,
                "duration_estimate": base.price - base.modified_duration * base.price * dy,
                "duration_convexity_estimate": estimate,
                "approximation_error": shocked - estimate,
            }
        )

    return pd.DataFrame(rows)


def bond_maturity_sweep(spec: BondSpec, maturities: Iterable[float]) -> pd.DataFrame:
    rows = []
    for m in maturities:
        a = analyze_bond(replace(spec, maturity_years=m))
        rows.append(
            {
                "maturity_years": m,
                "price": a.price,
                "macaulay_duration": a.macaulay_duration,
                "modified_duration": a.modified_duration,
                "convexity": a.convexity,
                "dv01": a.dv01,
            }
        )
    return pd.DataFrame(rows)


def _option_row(spec: OptionSpec) -> dict:
    g = analytic_greeks(spec)
    return {
        "price": black_scholes_price(spec),
        "delta": g.delta,
        "gamma": g.gamma,
        "vega": g.vega,
        "theta_daily": g.theta_daily,
        "rho": g.rho,
    }


def option_spot_sweep(spec: OptionSpec, spots: Iterable[float]) -> pd.DataFrame:
    return pd.DataFrame([{"spot": s, **_option_row(replace(spec, spot=s))} for s in spots])


def option_volatility_sweep(spec: OptionSpec, volatilities: Iterable[float]) -> pd.DataFrame:
    return pd.DataFrame([{"volatility": v, **_option_row(replace(spec, volatility=v))} for v in volatilities])
