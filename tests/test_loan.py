from __future__ import annotations

import math
from datetime import date

import pytest

from investor_leasing.errors import InvalidInputError, InvalidTermError
from investor_leasing.financing.dates import add_months, parse_date
from investor_leasing.financing.loan import (
    PaymentFrequency,
    calculate_monthly_payment,
    calculate_periodic_payment,
    generate_schedule,
    implied_annual_rate,
)


def test_monthly_payment_standard_loan():
    pmt = calculate_monthly_payment(100_000, 10.0, 36)
    assert abs(pmt - 3226.72) < 0.01


def test_monthly_payment_zero_rate():
    pmt = calculate_monthly_payment(1200, 0.0, 12)
    assert abs(pmt - 100.0) < 1e-9


def test_first_schedule_entry_splits_interest_and_principal():
    schedule = generate_schedule(100_000, 10.0, 36, date(2024, 1, 15))
    first = schedule[0]
    assert first.payment_number == 1
    assert first.date == date(2024, 2, 15)
    assert abs(first.payment - 3226.72) < 0.01
    assert abs(first.interest - 833.33) < 0.01
    assert abs(first.principal - 2393.39) < 0.01
    assert abs(first.balance - 97606.61) < 0.01


def test_schedule_principal_sums_to_loan_and_ends_at_zero():
    schedule = generate_schedule(150_000, 8.5, 48, "2024-03-01")
    assert len(schedule) == 48
    assert abs(sum(e.principal for e in schedule) - 150_000) < 1e-6
    assert schedule[-1].balance == 0.0
    for e in schedule:
        assert abs(e.payment - (e.principal + e.interest)) < 1e-9


def test_schedule_payment_is_level():
    schedule = generate_schedule(150_000, 8.5, 48, date(2024, 1, 1))
    pmt = calculate_monthly_payment(150_000, 8.5, 48)
    # Only the final entry absorbs the rounding left in the balance.
    assert all(abs(e.payment - pmt) < 1e-9 for e in schedule[:-1])
    assert abs(schedule[-1].payment - pmt) < 1e-6


def test_zero_rate_schedule_is_level():
    schedule = generate_schedule(10_000, 0.0, 10, date(2024, 1, 1))
    assert all(abs(e.payment - 1000.0) < 1e-9 for e in schedule)
    assert all(e.interest == 0.0 for e in schedule)
    assert schedule[-1].balance == 0.0


def test_quarterly_schedule_dates_and_count():
    schedule = generate_schedule(12_000, 0.0, 12, date(2024, 1, 10), PaymentFrequency.QUARTERLY)
    assert [e.date for e in schedule] == [
        date(2024, 4, 10),
        date(2024, 7, 10),
        date(2024, 10, 10),
        date(2025, 1, 10),
    ]
    assert all(abs(e.payment - 3000.0) < 1e-9 for e in schedule)


def test_term_not_multiple_of_frequency_is_rejected():
    with pytest.raises(InvalidTermError):
        generate_schedule(10_000, 5.0, 10, date(2024, 1, 1), "quarterly")


def test_non_positive_term_is_rejected():
    with pytest.raises(InvalidTermError):
        calculate_monthly_payment(10_000, 5.0, 0)


def test_non_finite_inputs_are_rejected():
    with pytest.raises(InvalidInputError):
        generate_schedule(math.nan, 5.0, 12, date(2024, 1, 1))
    with pytest.raises(InvalidInputError):
        calculate_monthly_payment(10_000, math.inf, 12)


def test_frequency_parse():
    assert PaymentFrequency.parse("Semi_Annual") is PaymentFrequency.SEMI_ANNUAL
    assert PaymentFrequency.parse("semiannual") is PaymentFrequency.SEMI_ANNUAL
    assert PaymentFrequency.parse("ANNUAL").periods_per_year == 1
    with pytest.raises(InvalidInputError):
        PaymentFrequency.parse("weekly")


def test_balloon_schedule_ends_at_balloon():
    schedule = generate_schedule(50_000, 6.0, 36, date(2024, 1, 1), balloon=10_000.0)
    assert schedule[-1].balance == 10_000.0
    assert abs(sum(e.principal for e in schedule) - 40_000.0) < 1e-6
    level = calculate_periodic_payment(50_000, 6.0, 36, balloon=10_000.0)
    assert abs(schedule[0].payment - level) < 1e-9
    assert level < calculate_monthly_payment(50_000, 6.0, 36)


def test_implied_rate_inverts_payment():
    pmt = calculate_monthly_payment(20_000, 7.5, 48)
    rate = implied_annual_rate(principal=20_000, payment=pmt, term_months=48)
    assert abs(rate - 7.5) < 1e-6


def test_implied_rate_with_residual():
    pmt = calculate_periodic_payment(20_000, 7.5, 48, balloon=5_000.0)
    rate = implied_annual_rate(principal=20_000, payment=pmt, term_months=48, residual=5_000.0)
    assert abs(rate - 7.5) < 1e-6


def test_implied_rate_without_root_raises():
    with pytest.raises(InvalidInputError):
        implied_annual_rate(principal=10_000, payment=0.0, term_months=12)


def test_add_months_clamps_day():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_month_end_start_keeps_anchor_day():
    schedule = generate_schedule(3_000, 0.0, 3, date(2024, 1, 31))
    assert [e.date for e in schedule] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_parse_date_forms():
    assert parse_date("2024-05") == date(2024, 5, 1)
    assert parse_date("2024-05-17T10:00:00Z") == date(2024, 5, 17)
    with pytest.raises(InvalidInputError):
        parse_date("not a date")


def test_rate_out_of_numeric_range_is_rejected():
    # -600% a year is -50% a month; 0.5 ** -1200 overflows a float.
    with pytest.raises(InvalidInputError):
        calculate_monthly_payment(1_000, -600.0, 1_200)


def test_non_finite_term_is_a_term_error():
    with pytest.raises(InvalidTermError):
        calculate_monthly_payment(1_000, 5.0, math.nan)
    with pytest.raises(InvalidTermError):
        calculate_monthly_payment(1_000, 5.0, math.inf)
    with pytest.raises(InvalidTermError):
        generate_schedule(1_000, 5.0, math.inf, date(2024, 1, 1))
