import pandas as pd
import pytest

from fincalc_engine.cashflows import (
    CashFlow,
    analyze_cashflows,
    as_cashflows,
    cashflow_table,
    dated_cashflows,
    discounted_payback_period,
    irr,
    npv,
    payback_period,
    profitability_index,
)
from fincalc_engine.errors import DomainError, InvalidInput, NoRoot


@pytest.fixture(scope="module")
def project():
    return [-100000.0, 20000.0, 25000.0, 30000.0, 35000.0, 40000.0]


def test_reference_npv_and_irr(project):
    assert npv(project, 0.10) == pytest.approx(10124.7430938, abs=1e-5)
    assert irr(project) == pytest.approx(0.134531083285, abs=1e-9)


def test_npv_at_irr_is_zero(project):
    assert abs(npv(project, irr(project))) < 1e-6


@pytest.mark.parametrize(
    "flows",
    [
        [-1000.0, 300.0, 400.0, 500.0],
        [-50.0, 10.0, 10.0, 10.0, 10.0, 10.0, 10.0],
        [-1000.0, 5000.0],
        [100.0, -30.0, -30.0, -30.0, -30.0],
        [(0.0, -1000.0), (0.5, 200.0), (1.75, 600.0), (3.0, 400.0)],
    ],
)
def test_npv_at_irr_for_sign_changing_flows(flows):
    r = irr(flows)
    assert abs(npv(flows, r)) < 1e-6


def test_irr_without_sign_change_raises():
    with pytest.raises(NoRoot):
        irr([100.0, 200.0, 300.0])
    with pytest.raises(NoRoot):
        irr([-100.0, -200.0])


def test_payback(project):
    assert payback_period(project) == pytest.approx(3.0 + 25000.0 / 35000.0)
    assert discounted_payback_period(project, 0.10) == pytest.approx(4.59235, abs=1e-4)


def test_payback_never_reached():
    assert payback_period([-100.0, 10.0, 10.0]) is None


def test_profitability_index(project):
    assert profitability_index(project, 0.10) == pytest.approx(1.1012474309, abs=1e-9)


def test_profitability_index_needs_outlay():
    with pytest.raises(InvalidInput):
        profitability_index([100.0, 50.0], 0.1)


def test_empty_flows_rejected():
    with pytest.raises(InvalidInput):
        npv([], 0.1)


def test_rate_at_minus_100pct_rejected(project):
    with pytest.raises(DomainError):
        npv(project, -1.0)


def test_negative_time_rejected():
    with pytest.raises(InvalidInput):
        CashFlow(-1.0, 100.0)


def test_cashflow_table_columns(project):
    table = cashflow_table(project, 0.10)
    assert {"time_years", "amount", "discount_factor", "pv", "cumulative", "cumulative_pv"}.issubset(table.columns)
    assert table["pv"].sum() == pytest.approx(npv(project, 0.10))
    assert table["cumulative"].iloc[-1] == pytest.approx(sum(project))


def test_analyze_cashflows_bundle(project):
    res = analyze_cashflows(project, 0.10)
    assert res.npv == pytest.approx(npv(project, 0.10))
    assert res.irr == pytest.approx(irr(project))
    assert res.profitability_index > 1.0


def test_analyze_cashflows_without_irr():
    res = analyze_cashflows([-100.0, -10.0], 0.05)
    assert res.irr is None
    assert res.payback_period is None


def test_dated_cashflows_year_fractions():
    val = pd.Timestamp("2026-01-01")
    flows = dated_cashflows(
        [pd.Timestamp("2026-01-01"), pd.Timestamp("2027-01-01")],
        [-100.0, 110.0],
        val,
        day_count="ACT/365",
        labels=["outlay", "payoff"],
    )
    assert flows[0].time_years == 0.0
    assert flows[1].time_years == pytest.approx(1.0)
    assert flows[1].label == "payoff"
    assert irr(flows) == pytest.approx(0.10, abs=1e-9)


def test_as_cashflows_accepts_mixed_inputs():
    flows = as_cashflows([CashFlow(0.0, -5.0, "x"), (1.0, 3.0)])
    assert flows[1] == CashFlow(1.0, 3.0)


def test_irr_on_long_monthly_schedule():
    """240 periods: NPV overflows near r = -99% and the bracket must shrink."""
    flows = [-10000.0] + [100.0] * 240
    r = irr(flows)
    assert 0.0 < r < 0.01
    assert abs(npv(flows, r)) < 1e-6
