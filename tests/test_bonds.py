import numpy as np
import pytest

from fincalc_engine.bonds import (
    BondSpec,
    BondVariant,
    SpotCurve,
    analyze_bond,
    analyze_cashflow_schedule,
    approximate_price_change,
    bond_cashflows,
    i_spread,
    price_bond,
    price_with_z_spread,
    yield_from_price,
    yield_to_call,
    z_spread,
)
from fincalc_engine.errors import DomainError, InvalidInput


@pytest.fixture(scope="module")
def bond():
    return BondSpec(
        face_value=1000.0,
        coupon_rate=0.05,
        yield_rate=0.045,
        maturity_years=5,
        payments_per_year=2,
    )


def test_reference_price_and_duration(bond):
    """
    Face 1000, 5% semiannual coupon, 4.5% yield, 5 years.
    Reference values summed by hand from the PV formulas (10 periods at 2.25%).
    """
    a = analyze_bond(bond)
    assert a.price == pytest.approx(1022.1655408722, abs=1e-6)
    assert a.macaulay_duration == pytest.approx(4.4922034826, abs=1e-8)
    assert a.modified_duration == pytest.approx(4.3933530393, abs=1e-8)
    assert a.convexity == pytest.approx(22.7673264618, abs=1e-6)
    assert a.dv01 == pytest.approx(0.4490734086, abs=1e-8)


def test_premium_bond_secondary_values(bond):
    a = analyze_bond(bond)
    assert a.premium_discount > 0, "coupon above yield must price at a premium"
    assert a.annual_coupon == pytest.approx(50.0)
    assert a.current_yield == pytest.approx(50.0 / a.price)
    assert a.total_periods == 10


def test_zero_coupon_closed_form():
    z = BondSpec(face_value=1000.0, coupon_rate=0.0, yield_rate=0.06, maturity_years=7, payments_per_year=2, variant=BondVariant.ZERO)
    a = analyze_bond(z)
    assert a.price == pytest.approx(1000.0 / 1.03**14, rel=1e-14)
    assert a.macaulay_duration == 7.0, "zero-coupon duration equals maturity exactly"


def test_zero_coupon_matches_schedule_formula():
    z = BondSpec(face_value=100.0, coupon_rate=0.0, yield_rate=0.05, maturity_years=3, payments_per_year=1, variant=BondVariant.ZERO)
    direct = analyze_bond(z)
    sched = analyze_cashflow_schedule([(3.0, 100.0)], periodic_yield=0.05, payments_per_year=1)
    assert direct.price == pytest.approx(sched.price)
    assert direct.macaulay_duration == pytest.approx(sched.macaulay_duration)
    assert direct.convexity == pytest.approx(sched.convexity)


def test_perpetual_closed_form():
    p = BondSpec(face_value=1000.0, coupon_rate=0.06, yield_rate=0.05, maturity_years=1, payments_per_year=1, variant=BondVariant.PERPETUAL)
    a = analyze_bond(p)
    assert a.price == pytest.approx(60.0 / 0.05)
    assert a.macaulay_duration == pytest.approx(1.05 / 0.05)


def test_perpetual_rejects_non_positive_yield():
    p = BondSpec(face_value=1000.0, coupon_rate=0.06, yield_rate=0.0, maturity_years=1, payments_per_year=1, variant=BondVariant.PERPETUAL)
    with pytest.raises(DomainError):
        price_bond(p)


def test_growing_perpetuity_rejects_yield_equal_to_growth():
    p = BondSpec(
        face_value=1000.0, coupon_rate=0.06, yield_rate=0.03, maturity_years=1,
        payments_per_year=1, variant=BondVariant.PERPETUAL, growth_rate=0.03,
    )
    with pytest.raises(DomainError):
        analyze_bond(p)


def test_callable_priced_as_fixed(bond):
    callable_bond = BondSpec(**{**bond.__dict__, "variant": BondVariant.CALLABLE, "call_price": 1010.0, "call_years": 3})
    assert price_bond(callable_bond) == pytest.approx(price_bond(bond))


def test_yield_to_call_below_ytm_for_premium_bond(bond):
    callable_bond = BondSpec(**{**bond.__dict__, "variant": BondVariant.CALLABLE, "call_price": 1000.0, "call_years": 2})
    px = price_bond(callable_bond)
    ytc = yield_to_call(callable_bond, px)
    assert ytc < callable_bond.yield_rate


def test_yield_from_price_inverts_pricer(bond):
    px = price_bond(bond)
    assert yield_from_price(bond, px) == pytest.approx(bond.yield_rate, abs=1e-9)

    zero = BondSpec(face_value=100.0, coupon_rate=0.0, yield_rate=0.04, maturity_years=10, payments_per_year=1, variant=BondVariant.ZERO)
    assert yield_from_price(zero, price_bond(zero)) == pytest.approx(0.04, abs=1e-9)


def test_discount_bond_yield_above_coupon(bond):
    y = yield_from_price(bond, 950.0)
    assert y > bond.coupon_rate


def test_duration_convexity_error_shrinks(bond):
    a = analyze_bond(bond)
    errors = []
    for dy in (0.01, 0.0001):
        shocked = price_bond(BondSpec(**{**bond.__dict__, "yield_rate": bond.yield_rate + dy}))
        errors.append(abs(shocked - (a.price + approximate_price_change(a, dy))))
    assert errors[1] < errors[0]


def test_dv01_matches_one_bp_reprice(bond):
    a = analyze_bond(bond)
    up = price_bond(BondSpec(**{**bond.__dict__, "yield_rate": bond.yield_rate + 0.0001}))
    assert a.dv01 > 0
    assert a.price - up == pytest.approx(a.dv01, rel=1e-3)


def test_cashflow_schedule_table(bond):
    cf = bond_cashflows(bond)
    assert len(cf) == 10
    assert cf["cashflow"].iloc[-1] == pytest.approx(1025.0)
    assert cf["pv"].sum() == pytest.approx(price_bond(bond))
    assert np.all(np.diff(cf["time_years"]) > 0)


def test_less_than_one_period_rejected():
    with pytest.raises(InvalidInput):
        price_bond(BondSpec(face_value=100.0, coupon_rate=0.05, yield_rate=0.05, maturity_years=0.25, payments_per_year=2))


def test_yield_below_minus_100pct_rejected(bond):
    with pytest.raises(DomainError):
        price_bond(BondSpec(**{**bond.__dict__, "yield_rate": -2.5}))


@pytest.mark.parametrize("variant", [BondVariant.FIXED, BondVariant.ZERO])
def test_yield_inversion_on_long_monthly_schedule(variant):
    """240 monthly periods: (1 + r)^-240 overflows near r = -99%."""
    spec = BondSpec(1000.0, 0.05, 0.06, 20, 12, variant=variant)
    assert yield_from_price(spec, price_bond(spec)) == pytest.approx(0.06, abs=1e-8)


def test_thirty_year_monthly_yield_inversion():
    spec = BondSpec(1000.0, 0.03, 0.07, 30, 12)
    assert yield_from_price(spec, price_bond(spec)) == pytest.approx(0.07, abs=1e-8)


@pytest.fixture(scope="module")
def flat_curve():
    return SpotCurve(tenors=(0.5, 1.0, 5.0, 10.0), rates=(0.03, 0.03, 0.03, 0.03))


@pytest.fixture(scope="module")
def upward_curve():
    return SpotCurve(tenors=(0.5, 2.0, 5.0, 10.0, 30.0), rates=(0.02, 0.025, 0.032, 0.038, 0.042))


def test_z_spread_over_flat_curve_is_yield_gap(bond, flat_curve):
    price = price_bond(bond)
    assert z_spread(bond, flat_curve, price) == pytest.approx(0.015, abs=1e-9)
    assert price_with_z_spread(bond, flat_curve, 0.015) == pytest.approx(price, abs=1e-9)


def test_z_spread_reprices_on_sloped_curve(upward_curve):
    spec = BondSpec(1000.0, 0.05, 0.055, 20, 12)
    price = price_bond(spec)
    z = z_spread(spec, upward_curve, price)
    assert price_with_z_spread(spec, upward_curve, z) == pytest.approx(price, abs=1e-7)
    # spot rates sit below the bond yield everywhere
    assert 0.0 < z < 0.055


def test_z_spread_zero_coupon(upward_curve):
    spec = BondSpec(1000.0, 0.0, 0.05, 10, 1, variant=BondVariant.ZERO)
    z = z_spread(spec, upward_curve, price_bond(spec))
    assert z == pytest.approx(0.05 - 0.038, abs=1e-9)


def test_i_spread(bond, flat_curve, upward_curve):
    price = price_bond(bond)
    assert i_spread(bond, price, flat_curve) == pytest.approx(0.015, abs=1e-9)
    assert i_spread(bond, price, upward_curve) == pytest.approx(0.045 - 0.032, abs=1e-9)


def test_spread_guards(flat_curve):
    perp = BondSpec(1000.0, 0.05, 0.05, 1, 1, variant=BondVariant.PERPETUAL)
    with pytest.raises(InvalidInput):
        z_spread(perp, flat_curve, 1000.0)
    with pytest.raises(InvalidInput):
        i_spread(perp, 1000.0, flat_curve)
    with pytest.raises(InvalidInput):
        SpotCurve(tenors=(1.0, 1.0), rates=(0.02, 0.03))
    with pytest.raises(InvalidInput):
        SpotCurve(tenors=(1.0,), rates=(0.02, 0.03))
