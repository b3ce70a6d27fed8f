from __future__ import annotations

import pytest

from investor_leasing.errors import InvalidInputError
from investor_leasing.projections.generators import (
    QuarterlyAssumptions,
    generate_financial_projections,
    generate_quarterly_performance,
)


def test_flat_projection():
    rows = generate_financial_projections(1_000, 300, 0.0, 0.0, 5)
    assert [r.period for r in rows] == [f"Year {k}" for k in range(1, 6)]
    assert all(abs(r.cash_flow - 300.0) < 1e-12 for r in rows)
    assert abs(rows[2].cumulative_npv - (-100.0)) < 1e-9
    assert abs(rows[3].roi - 0.2) < 1e-12


def test_projection_irr_to_date():
    rows = generate_financial_projections(1_000, 300, 0.0, 0.0, 5)
    # A single 300 inflow on 1000 out is a -70% return.
    assert abs(rows[0].irr - (-0.7)) < 1e-9
    assert rows[3].irr > 0


def test_projection_growth_and_discounting():
    rows = generate_financial_projections(500, 100, 0.1, 0.05, 3)
    assert [round(r.cash_flow, 9) for r in rows] == [100.0, 110.0, 121.0]
    assert abs(rows[1].net_present_value - 110.0 / 1.05**2) < 1e-9


def test_projection_years():
    assert generate_financial_projections(1_000, 300, 0.0, 0.0, 0) == ()
    with pytest.raises(InvalidInputError):
        generate_financial_projections(1_000, 300, 0.0, 0.0, -1)


def test_quarterly_flat():
    rows = generate_quarterly_performance(100_000, 40_000, 20_000, 0.0, 1)
    assert [r.quarter for r in rows] == ["Y1Q1", "Y1Q2", "Y1Q3", "Y1Q4"]
    q1 = rows[0]
    assert abs(q1.revenue - 10_000.0) < 1e-9
    assert abs(q1.expenses - 5_000.0) < 1e-9
    assert abs(q1.debt_servicing - 750.0) < 1e-9
    assert abs(q1.net_income - 4_250.0) < 1e-9
    assert abs(q1.cash_flow - 2_975.0) < 1e-9
    assert abs(q1.capital_reserves - 12_975.0) < 1e-9
    assert abs(rows[-1].capital_reserves - 21_900.0) < 1e-9


def test_quarterly_growth():
    rows = generate_quarterly_performance(100_000, 40_000, 20_000, 0.05, 2)
    assert len(rows) == 8
    assert rows[4].quarter == "Y2Q1"
    assert abs(rows[1].revenue - 10_500.0) < 1e-9
    assert abs(rows[1].expenses - 5_000.0 * 1.035) < 1e-9
    assert abs(rows[0].projected_growth - 5.0) < 1e-12


def test_quarterly_reserves_clamp():
    loose = generate_quarterly_performance(10_000, 0.0, 100_000, 0.0, 1)
    assert loose[-1].capital_reserves < 0
    clamped = generate_quarterly_performance(
        10_000, 0.0, 100_000, 0.0, 1, QuarterlyAssumptions(clamp_reserves=True)
    )
    assert all(r.capital_reserves == 0.0 for r in clamped)
