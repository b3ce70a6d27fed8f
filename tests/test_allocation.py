from __future__ import annotations

from datetime import date

import pytest

from investor_leasing.errors import InvestorValidationError
from investor_leasing.financing.loan import generate_schedule
from investor_leasing.investors.allocation import Investor, InvestorPolicy, allocate_returns, validate_investors


def _schedule():
    return generate_schedule(100_000, 10.0, 36, date(2024, 1, 15))


def test_first_period_split_by_contribution():
    investors = [Investor("a", "Ana", 40_000), Investor("b", "Ben", 60_000)]
    returns = allocate_returns(_schedule(), investors)
    assert abs(returns[0].monthly_returns[0] - 333.33) < 0.01
    assert abs(returns[1].monthly_returns[0] - 500.00) < 0.01
    assert abs(returns[0].share - 0.4) < 1e-12


def test_returns_partition_each_period_interest():
    schedule = generate_schedule(150_000, 8.5, 48, date(2024, 1, 1))
    investors = [Investor("1", "A", 75_000), Investor("2", "B", 45_000), Investor("3", "C", 30_000)]
    returns = allocate_returns(schedule, investors)
    assert len(returns[0].monthly_returns) == 48
    for t, entry in enumerate(schedule):
        assert abs(sum(r.monthly_returns[t] for r in returns) - entry.interest) < 1e-9
    for r in returns:
        assert abs(r.total_return - (r.investment_amount + r.total_interest)) < 1e-9
        assert abs(r.roi - r.total_interest / r.investment_amount) < 1e-12


def test_zero_investment_investor_gets_nothing():
    investors = [Investor("1", "A", 100_000), Investor("2", "Silent", 0.0)]
    returns = allocate_returns(_schedule(), investors)
    assert returns[1].share == 0.0
    assert returns[1].roi == 0.0
    assert returns[1].total_interest == 0.0


def test_all_zero_investments_do_not_divide_by_zero():
    returns = allocate_returns(_schedule(), [Investor("1", "A", 0.0)])
    assert returns[0].share == 0.0
    assert returns[0].roi == 0.0


def test_no_investors():
    assert allocate_returns(_schedule(), []) == ()


def test_validate_accepts_sum_within_tolerance():
    validate_investors([Investor("1", "A", 60_000), Investor("2", "B", 39_999.995)], 100_000)


def test_validate_rejects_sum_mismatch():
    with pytest.raises(InvestorValidationError):
        validate_investors([Investor("1", "A", 60_000), Investor("2", "B", 30_000)], 100_000)


def test_validate_applies_count_policy():
    policy = InvestorPolicy(min_investors=3, max_investors=20)
    with pytest.raises(InvestorValidationError):
        validate_investors([Investor("1", "A", 100_000)], 100_000, policy)
    with pytest.raises(InvestorValidationError):
        validate_investors(
            [Investor(str(i), f"I{i}", 1_000.0) for i in range(3)],
            3_000,
            InvestorPolicy(min_investors=1, max_investors=2),
        )


def test_validate_rejects_bad_rows():
    with pytest.raises(InvestorValidationError):
        validate_investors([Investor("1", " ", 100_000)], 100_000)
    with pytest.raises(InvestorValidationError):
        validate_investors([Investor("1", "A", 110_000), Investor("2", "B", -10_000)], 100_000)
    with pytest.raises(InvestorValidationError):
        validate_investors([Investor("1", "A", 50_000), Investor("1", "B", 50_000)], 100_000)
