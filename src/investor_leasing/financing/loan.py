from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum

from investor_leasing.errors import InvalidInputError, InvalidTermError
from investor_leasing.financing.dates import add_months, parse_date

logger = logging.getLogger(__name__)


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"

    @property
    def months_per_period(self) -> int:
        return _MONTHS_PER_PERIOD[self]

    @property
    def periods_per_year(self) -> int:
        return 12 // self.months_per_period

    @classmethod
    def parse(cls, value: str | PaymentFrequency) -> PaymentFrequency:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-")
        if key == "semiannual":
            key = "semi-annual"
        try:
            return cls(key)
        except ValueError as e:
            raise InvalidInputError(f"unknown payment frequency: {value!r}") from e


_MONTHS_PER_PERIOD = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.SEMI_ANNUAL: 6,
    PaymentFrequency.ANNUAL: 12,
}


@dataclass(frozen=True)
class PaymentScheduleEntry:
    payment_number: int
    date: date
    payment: float
    principal: float
    interest: float
    balance: float


def require_finite(**values: float) -> None:
    for name, value in values.items():
        try:
            ok = math.isfinite(float(value))
        except (TypeError, ValueError):
            ok = False
        if not ok:
            raise InvalidInputError(f"{name} must be a finite number, got {value!r}")


def number_of_periods(term_months: int, frequency: str | PaymentFrequency = PaymentFrequency.MONTHLY) -> int:
    """Payments in a term; the term must be a whole number of periods."""
    freq = PaymentFrequency.parse(frequency)
    try:
        require_finite(term_months=term_months)
    except InvalidInputError as e:
        raise InvalidTermError(str(e)) from e
    if isinstance(term_months, bool) or int(term_months) != term_months:
        raise InvalidTermError(f"term_months must be an integer, got {term_months!r}")
    term_months = int(term_months)
    if term_months <= 0:
        raise InvalidTermError("term_months must be > 0")
    mpp = freq.months_per_period
    if term_months % mpp != 0:
        raise InvalidTermError(
            f"term_months={term_months} is not a multiple of {mpp} ({freq.value} payments)"
        )
    return term_months // mpp


def periodic_rate(annual_rate_pct: float, frequency: str | PaymentFrequency = PaymentFrequency.MONTHLY) -> float:
    freq = PaymentFrequency.parse(frequency)
    r = (float(annual_rate_pct) / 100.0) / freq.periods_per_year
    if r <= -1.0:
        raise InvalidInputError("annual_rate_pct too small")
    return r


def periodic_payment(*, principal: float, rate: float, periods: int, balloon: float = 0.0) -> float:
    """
    Level annuity payment.

    principal: amount financed today
    rate: interest rate per period (e.g. 0.01 for 1% a month)
    periods: number of payments
    balloon: balance left outstanding after the last payment (0 for fully amortizing)
    """
    if periods <= 0:
        raise InvalidTermError("periods must be > 0")
    pv = float(principal)
    fv = float(balloon)
    r = float(rate)

    if abs(r) < 1e-12:
        return (pv - fv) / periods

    # PV = pmt*(1-(1+r)^-n)/r + FV*(1+r)^-n
    try:
        disc = (1.0 + r) ** (-periods)
    except OverflowError as e:
        raise InvalidInputError(f"rate {r:.6g} per period over {periods} periods is out of numeric range") from e
    ann = (1.0 - disc) / r
    return float((pv - fv * disc) / ann)


def calculate_periodic_payment(
    principal: float,
    annual_rate_pct: float,
    term_months: int,
    frequency: str | PaymentFrequency = PaymentFrequency.MONTHLY,
    balloon: float = 0.0,
) -> float:
    require_finite(principal=principal, annual_rate_pct=annual_rate_pct, balloon=balloon)
    n = number_of_periods(term_months, frequency)
    r = periodic_rate(annual_rate_pct, frequency)
    return periodic_payment(principal=principal, rate=r, periods=n, balloon=balloon)


def calculate_monthly_payment(principal: float, annual_rate_pct: float, term_months: int) -> float:
    return calculate_periodic_payment(principal, annual_rate_pct, term_months, PaymentFrequency.MONTHLY)


def generate_schedule(
    principal: float,
    annual_rate_pct: float,
    term_months: int,
    start_date: date | str,
    frequency: str | PaymentFrequency = PaymentFrequency.MONTHLY,
    *,
    balloon: float = 0.0,
) -> tuple[PaymentScheduleEntry, ...]:
    """
    Fixed-payment amortization schedule.

    Payment k is dated k periods after `start_date`. The last entry absorbs the
    accumulated rounding so its balance is exactly `balloon` (0 unless a residual
    value is carried to the end of the term).
    """
    require_finite(principal=principal, annual_rate_pct=annual_rate_pct, balloon=balloon)
    if principal < 0:
        raise InvalidInputError("principal must be >= 0")
    freq = PaymentFrequency.parse(frequency)
    n = number_of_periods(term_months, freq)
    r = periodic_rate(annual_rate_pct, freq)
    start = parse_date(start_date)

    pmt = periodic_payment(principal=principal, rate=r, periods=n, balloon=balloon)
    fv = float(balloon)
    balance = float(principal)
    entries: list[PaymentScheduleEntry] = []

    for k in range(1, n + 1):
        interest = balance * r
        if k == n:
            principal_part = balance - fv
            payment = principal_part + interest
            balance = fv
        else:
            principal_part = pmt - interest
            payment = pmt
            balance -= principal_part
        entries.append(
            PaymentScheduleEntry(
                payment_number=k,
                date=add_months(start, k * freq.months_per_period),
                payment=float(payment),
                principal=float(principal_part),
                interest=float(interest),
                balance=float(balance),
            )
        )

    logger.debug(
        "schedule principal=%.2f rate=%.4f%% periods=%d frequency=%s payment=%.2f",
        principal,
        annual_rate_pct,
        n,
        freq.value,
        pmt,
    )
    return tuple(entries)


def _ending_balance(principal: float, rate: float, periods: int, payment: float) -> float:
    bal = float(principal)
    for _ in range(periods):
        bal = bal * (1.0 + rate) - payment
    return bal


def implied_annual_rate(
    *,
    principal: float,
    payment: float,
    term_months: int,
    residual: float = 0.0,
    lower: float = -0.99,
    upper: float = 10.0,
    tol: float = 1e-12,
) -> float:
    """
    Nominal annual rate (percent) at which a level monthly `payment` brings
    `principal` down to `residual` after `term_months` payments.
    Binary search on the monthly rate; the ending balance rises with the rate.
    """
    require_finite(principal=principal, payment=payment, residual=residual)
    n = number_of_periods(term_months, PaymentFrequency.MONTHLY)
    lo, hi = float(lower), float(upper)

    def gap(r: float) -> float:
        return _ending_balance(principal, r, n, payment) - residual

    if gap(lo) > 0:
        raise InvalidInputError(
            f"payment {payment:.2f} cannot amortize {principal:.2f} to {residual:.2f} "
            f"in {n} months at any rate above {lo:.2%} a month"
        )
    if gap(hi) < 0:
        raise InvalidInputError(
            f"payment {payment:.2f} overpays {principal:.2f} even at {hi:.2%} a month"
        )

    for _ in range(200):
        mid = (lo + hi) / 2.0
        if gap(mid) > 0:
            hi = mid
        else:
            lo = mid
        if (hi - lo) <= tol:
            break

    return float((lo + hi) / 2.0 * 12.0 * 100.0)
