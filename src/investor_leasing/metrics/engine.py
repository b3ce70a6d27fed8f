"""
Investment metrics over a periodic cash-flow series.

All rates are decimals per period unless a name says `_pct` (annual percent).
Results that can be undefined are modelled explicitly: IRR returns an
`IrrResult` that may be unconverged, and payback/break-even return a
`PaybackPeriod` with one of three states instead of leaking infinities.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.loan import require_finite

logger = logging.getLogger(__name__)

IRR_LOWER = -0.99
IRR_UPPER = 10.0
IRR_TOLERANCE = 1e-12
IRR_MAX_ITERATIONS = 200


@dataclass(frozen=True)
class IrrOptions:
    """Bisection bracket (periodic rates), bracket-width tolerance and iteration cap for `calculate_irr`."""

    lower: float = IRR_LOWER
    upper: float = IRR_UPPER
    tol: float = IRR_TOLERANCE
    max_iterations: int = IRR_MAX_ITERATIONS

    def solve(self, initial_investment: float, cash_flows: Sequence[float]) -> IrrResult:
        return calculate_irr(
            initial_investment,
            cash_flows,
            lower=self.lower,
            upper=self.upper,
            tol=self.tol,
            max_iterations=self.max_iterations,
        )


@dataclass(frozen=True)
class IrrResult:
    rate: float | None
    iterations: int

    @property
    def converged(self) -> bool:
        return self.rate is not None

    def annualized(self, periods_per_year: int) -> IrrResult:
        if self.rate is None:
            return self
        return IrrResult(rate=self.rate * periods_per_year, iterations=self.iterations)


class PaybackStatus(str, Enum):
    REACHED = "reached"
    NEVER = "never"
    NOT_APPLICABLE = "n/a"


@dataclass(frozen=True)
class PaybackPeriod:
    status: PaybackStatus
    periods: float | None = None

    @classmethod
    def reached(cls, periods: float) -> PaybackPeriod:
        return cls(PaybackStatus.REACHED, float(periods))

    @classmethod
    def never(cls) -> PaybackPeriod:
        return cls(PaybackStatus.NEVER)

    @classmethod
    def not_applicable(cls) -> PaybackPeriod:
        return cls(PaybackStatus.NOT_APPLICABLE)

    @property
    def label(self) -> str:
        if self.status is PaybackStatus.NOT_APPLICABLE:
            return "N/A"
        if self.status is PaybackStatus.NEVER:
            return "never"
        return f"{self.periods:.1f} months"


def _present_values(cash_flows: Sequence[float], discount_rate: float) -> np.ndarray:
    require_finite(discount_rate=discount_rate)
    if discount_rate <= -1.0:
        raise InvalidInputError("discount_rate must be > -1")
    cf = np.asarray(cash_flows, dtype=float)
    if not np.all(np.isfinite(cf)):
        raise InvalidInputError("cash_flows must be finite numbers")
    t = np.arange(1, cf.size + 1, dtype=float)
    return cf / np.power(1.0 + discount_rate, t)


def calculate_npv(initial_investment: float, cash_flows: Sequence[float], discount_rate: float) -> float:
    """-initial + sum(cf_t / (1+r)^(t+1)) with cash flows at the end of periods 1..n."""
    require_finite(initial_investment=initial_investment)
    return float(_present_values(cash_flows, discount_rate).sum() - initial_investment)


def _terminal_value(flows: Sequence[float], rate: float) -> float:
    # NPV scaled by (1+r)^T: same sign, and stays finite-or-inf (never nan) across the bracket.
    g = 1.0 + rate
    v = 0.0
    for cf in flows:
        v = v * g + cf
    return v


def calculate_irr(
    initial_investment: float,
    cash_flows: Sequence[float],
    *,
    lower: float = IRR_LOWER,
    upper: float = IRR_UPPER,
    tol: float = IRR_TOLERANCE,
    max_iterations: int = IRR_MAX_ITERATIONS,
) -> IrrResult:
    """
    Periodic rate at which NPV(initial_investment, cash_flows, rate) == 0.
    Bisection over [lower, upper]; unconverged when NPV has the same sign at
    both ends of the bracket (no root inside) or the iteration cap is hit.
    """
    require_finite(initial_investment=initial_investment, lower=lower, upper=upper)
    if not lower < upper or lower <= -1.0:
        raise InvalidInputError("IRR bracket must satisfy -1 < lower < upper")
    flows = [-float(initial_investment)] + [float(cf) for cf in cash_flows]
    require_finite(**{f"cash_flows[{i}]": cf for i, cf in enumerate(flows[1:])})

    lo, hi = float(lower), float(upper)
    v_lo = _terminal_value(flows, lo)
    v_hi = _terminal_value(flows, hi)
    if v_lo == 0.0:
        return IrrResult(rate=lo, iterations=0)
    if v_hi == 0.0:
        return IrrResult(rate=hi, iterations=0)
    if (v_lo > 0) == (v_hi > 0):
        logger.warning("IRR has no sign change on [%s, %s]; %d cash flows", lo, hi, len(flows))
        return IrrResult(rate=None, iterations=0)

    for i in range(1, max_iterations + 1):
        mid = (lo + hi) / 2.0
        v_mid = _terminal_value(flows, mid)
        if v_mid == 0.0:
            return IrrResult(rate=mid, iterations=i)
        if (v_mid > 0) == (v_lo > 0):
            lo, v_lo = mid, v_mid
        else:
            hi = mid
        if (hi - lo) <= tol:
            logger.debug("IRR converged after %d iterations", i)
            return IrrResult(rate=(lo + hi) / 2.0, iterations=i)

    logger.warning("IRR did not converge within %d iterations", max_iterations)
    return IrrResult(rate=None, iterations=max_iterations)


def calculate_payback_period(initial_investment: float, net_cash_flow: float) -> PaybackPeriod:
    """Periods to recover `initial_investment` from a level periodic net cash flow."""
    require_finite(initial_investment=initial_investment, net_cash_flow=net_cash_flow)
    if initial_investment <= 0:
        return PaybackPeriod.not_applicable()
    if net_cash_flow <= 0:
        return PaybackPeriod.never()
    return PaybackPeriod.reached(initial_investment / net_cash_flow)


def payback_from_cash_flows(
    initial_investment: float,
    cash_flows: Sequence[float],
    *,
    interpolate: bool = True,
) -> PaybackPeriod:
    """
    First point where the cumulative cash flow recovers the investment.
    With `interpolate`, the crossing period is split linearly (2.5 = halfway
    through period 3); otherwise whole periods are counted.
    """
    require_finite(initial_investment=initial_investment)
    if initial_investment <= 0:
        return PaybackPeriod.not_applicable()
    remaining = float(initial_investment)
    for i, cf in enumerate(cash_flows):
        before = remaining
        remaining -= float(cf)
        if remaining <= 0:
            if interpolate and cf > 0:
                return PaybackPeriod.reached(i + before / float(cf))
            return PaybackPeriod.reached(i + 1)
    return PaybackPeriod.never()


def calculate_discounted_payback_period(
    initial_investment: float,
    cash_flows: Sequence[float],
    discount_rate: float,
) -> PaybackPeriod:
    pv = _present_values(cash_flows, discount_rate)
    return payback_from_cash_flows(initial_investment, pv.tolist(), interpolate=False)


def calculate_break_even_point(
    fixed_costs: float,
    monthly_revenue: float,
    monthly_variable_costs: float,
) -> PaybackPeriod:
    """Months of contribution margin needed to cover fixed costs."""
    require_finite(
        fixed_costs=fixed_costs,
        monthly_revenue=monthly_revenue,
        monthly_variable_costs=monthly_variable_costs,
    )
    return calculate_payback_period(fixed_costs, monthly_revenue - monthly_variable_costs)


def _ratio(numerator: float, denominator: float, name: str) -> float:
    require_finite(**{f"{name} numerator": numerator, f"{name} denominator": denominator})
    if denominator == 0:
        raise InvalidInputError(f"{name} is undefined for a zero denominator")
    return float(numerator / denominator)


def calculate_dscr(net_operating_income: float, debt_service: float) -> float:
    return _ratio(net_operating_income, debt_service, "debt service coverage ratio")


def calculate_ltv(loan_amount: float, asset_value: float) -> float:
    return _ratio(loan_amount, asset_value, "loan to value ratio")


def calculate_interest_coverage_ratio(earnings: float, interest_expense: float) -> float:
    return _ratio(earnings, interest_expense, "interest coverage ratio")


def calculate_profitability_index(
    initial_investment: float,
    cash_flows: Sequence[float],
    discount_rate: float,
) -> float:
    pv = float(_present_values(cash_flows, discount_rate).sum())
    return _ratio(pv, initial_investment, "profitability index")


@dataclass(frozen=True)
class InvestmentMetrics:
    net_present_value: float
    internal_rate_of_return: IrrResult
    debt_service_coverage_ratio: float | None
    loan_to_value_ratio: float | None
    interest_coverage_ratio: float | None
    break_even_point: PaybackPeriod
    payback_period: PaybackPeriod
    discounted_payback_period: PaybackPeriod
    profitability_index: float
    return_on_investment: float


def calculate_investment_metrics(
    principal: float,
    annual_rate_pct: float,
    term_months: int,
    payment: float,
    asset_value: float | None = None,
    annual_revenue: float | None = None,
    *,
    discount_rate_pct: float | None = None,
    expense_ratio: float = 0.6,
    irr_options: IrrOptions = IrrOptions(),
) -> InvestmentMetrics:
    """
    Lender-side metrics for a loan repaid by `term_months` level payments.
    Ratios with a zero denominator (interest-free loan, zero asset value) are None.
    """
    require_finite(principal=principal, annual_rate_pct=annual_rate_pct, payment=payment)
    if principal <= 0:
        raise InvalidInputError("principal must be > 0")
    if term_months <= 0:
        raise InvalidInputError("term_months must be > 0")
    if asset_value is None:
        asset_value = principal * 1.25
    if annual_revenue is None:
        annual_revenue = principal * 0.25
    if discount_rate_pct is None:
        discount_rate_pct = annual_rate_pct
    require_finite(asset_value=asset_value, annual_revenue=annual_revenue, discount_rate_pct=discount_rate_pct)

    monthly_discount = discount_rate_pct / 100.0 / 12.0
    monthly_rate = annual_rate_pct / 100.0 / 12.0
    cash_flows = [float(payment)] * int(term_months)

    net_operating_income = annual_revenue * (1.0 - expense_ratio)
    total_payments = payment * term_months
    total_interest = total_payments - principal
    annual_interest = total_interest / term_months * 12.0
    annual_debt_service = payment * 12.0

    return InvestmentMetrics(
        net_present_value=calculate_npv(principal, cash_flows, monthly_discount),
        internal_rate_of_return=irr_options.solve(principal, cash_flows).annualized(12),
        debt_service_coverage_ratio=(
            calculate_dscr(net_operating_income, annual_debt_service) if annual_debt_service != 0 else None
        ),
        loan_to_value_ratio=calculate_ltv(principal, asset_value) if asset_value != 0 else None,
        interest_coverage_ratio=(
            calculate_interest_coverage_ratio(net_operating_income, annual_interest) if annual_interest != 0 else None
        ),
        break_even_point=calculate_break_even_point(principal, payment, principal * monthly_rate),
        payback_period=payback_from_cash_flows(principal, cash_flows, interpolate=False),
        discounted_payback_period=calculate_discounted_payback_period(principal, cash_flows, monthly_discount),
        profitability_index=calculate_profitability_index(principal, cash_flows, monthly_discount),
        return_on_investment=total_interest / principal,
    )
