from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.loan import require_finite
from investor_leasing.metrics.engine import IrrOptions


@dataclass(frozen=True)
class FinancialProjection:
    period: str
    cash_flow: float
    net_present_value: float
    cumulative_npv: float
    roi: float
    irr: float | None


@dataclass(frozen=True)
class QuarterlyPerformance:
    quarter: str
    revenue: float
    expenses: float
    net_income: float
    cash_flow: float
    debt_servicing: float
    projected_growth: float
    capital_reserves: float


@dataclass(frozen=True)
class QuarterlyAssumptions:
    reserve_ratio: float = 0.10  # opening reserves as a share of principal
    debt_service_rate: float = 0.03  # annual, on principal
    expense_growth_factor: float = 0.7  # expenses compound at this fraction of the growth rate
    cash_conversion: float = 0.7  # share of net income that turns into cash
    reserve_retention: float = 1.0  # share of each quarter's cash flow kept in reserves
    clamp_reserves: bool = False


def _check_years(years: int) -> int:
    if isinstance(years, bool) or int(years) != years or years < 0:
        raise InvalidInputError(f"years must be a non-negative integer, got {years!r}")
    return int(years)


def generate_financial_projections(
    principal: float,
    base_cash_flow: float,
    annual_growth_rate: float,
    discount_rate: float,
    years: int,
    *,
    irr_options: IrrOptions = IrrOptions(),
) -> tuple[FinancialProjection, ...]:
    """
    Annual cash flows compounding at `annual_growth_rate` (decimal), each
    discounted at `discount_rate` (decimal). IRR is recomputed on the flows to
    date and is None while it has no root (e.g. before the investment is recovered
    enough to bracket one).
    """
    require_finite(
        principal=principal,
        base_cash_flow=base_cash_flow,
        annual_growth_rate=annual_growth_rate,
        discount_rate=discount_rate,
    )
    if discount_rate <= -1.0:
        raise InvalidInputError("discount_rate must be > -1")
    n = _check_years(years)

    t = np.arange(1, n + 1, dtype=float)
    flows = base_cash_flow * np.power(1.0 + annual_growth_rate, t - 1.0)
    pvs = flows / np.power(1.0 + discount_rate, t)
    cumulative = -float(principal) + np.cumsum(pvs)
    to_date = np.cumsum(flows)

    out: list[FinancialProjection] = []
    for k in range(n):
        irr = irr_options.solve(principal, flows[: k + 1].tolist())
        roi = (float(to_date[k]) - principal) / principal if principal != 0 else 0.0
        out.append(
            FinancialProjection(
                period=f"Year {k + 1}",
                cash_flow=float(flows[k]),
                net_present_value=float(pvs[k]),
                cumulative_npv=float(cumulative[k]),
                roi=roi,
                irr=irr.rate,
            )
        )
    return tuple(out)


def generate_quarterly_performance(
    principal: float,
    annual_revenue: float,
    annual_expenses: float,
    quarterly_growth_rate: float,
    years: int,
    assumptions: QuarterlyAssumptions = QuarterlyAssumptions(),
) -> tuple[QuarterlyPerformance, ...]:
    require_finite(
        principal=principal,
        annual_revenue=annual_revenue,
        annual_expenses=annual_expenses,
        quarterly_growth_rate=quarterly_growth_rate,
    )
    n = _check_years(years) * 4
    a = assumptions

    k = np.arange(n, dtype=float)
    revenue = (annual_revenue / 4.0) * np.power(1.0 + quarterly_growth_rate, k)
    expenses = (annual_expenses / 4.0) * np.power(1.0 + quarterly_growth_rate * a.expense_growth_factor, k)
    debt_servicing = principal * a.debt_service_rate / 4.0
    net_income = revenue - expenses - debt_servicing
    cash_flow = net_income * a.cash_conversion

    reserves = principal * a.reserve_ratio
    out: list[QuarterlyPerformance] = []
    for q in range(n):
        reserves += float(cash_flow[q]) * a.reserve_retention
        if a.clamp_reserves and reserves < 0:
            reserves = 0.0
        out.append(
            QuarterlyPerformance(
                quarter=f"Y{q // 4 + 1}Q{q % 4 + 1}",
                revenue=float(revenue[q]),
                expenses=float(expenses[q]),
                net_income=float(net_income[q]),
                cash_flow=float(cash_flow[q]),
                debt_servicing=float(debt_servicing),
                projected_growth=quarterly_growth_rate * 100.0,
                capital_reserves=reserves,
            )
        )
    return tuple(out)
