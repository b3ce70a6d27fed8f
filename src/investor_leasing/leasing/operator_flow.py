from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.dates import parse_date
from investor_leasing.financing.loan import (
    PaymentScheduleEntry,
    calculate_monthly_payment,
    generate_schedule,
    implied_annual_rate,
    require_finite,
)
from investor_leasing.investors.allocation import Investor, InvestorReturn, allocate_returns
from investor_leasing.metrics.engine import (
    IrrOptions,
    IrrResult,
    PaybackPeriod,
    calculate_npv,
    payback_from_cash_flows,
)


@dataclass(frozen=True)
class OperatorFlowResult:
    fixed_cost: float  # monthly payment owed to investors
    financial_margin: float
    client_base_rent: float
    client_rate_pct: float
    residual_value: float
    client_schedule: tuple[PaymentScheduleEntry, ...]
    investor_schedule: tuple[PaymentScheduleEntry, ...]
    investor_returns: tuple[InvestorReturn, ...]
    net_present_value: float
    internal_rate_of_return: IrrResult
    payback_period: PaybackPeriod
    total_project_profit: float


def calculate_operator_flow(
    *,
    asset_cost: float,
    down_payment: float,
    investor_annual_rate_pct: float,
    term_months: int,
    start_date: date | str,
    investors: Sequence[Investor],
    financial_margin: float,
    residual_value_rate: float,
    discount_rate_pct: float = 4.0,
    irr_options: IrrOptions = IrrOptions(),
) -> OperatorFlowResult:
    """
    Price a lease from the operator's funding cost outward.

    The client rent is the investors' fixed monthly payment plus a fixed margin;
    the client rate is whatever annual rate makes that rent amortize the
    financed amount down to the residual value.
    """
    require_finite(
        asset_cost=asset_cost,
        down_payment=down_payment,
        financial_margin=financial_margin,
        residual_value_rate=residual_value_rate,
        discount_rate_pct=discount_rate_pct,
    )
    if asset_cost <= 0:
        raise InvalidInputError("asset_cost must be > 0")
    if not 0 <= down_payment < asset_cost:
        raise InvalidInputError("down_payment must be in [0, asset_cost)")
    start = parse_date(start_date)

    financed = asset_cost - down_payment
    residual = asset_cost * residual_value_rate / 100.0

    fixed_cost = calculate_monthly_payment(financed, investor_annual_rate_pct, term_months)
    client_rent = fixed_cost + financial_margin
    client_rate = implied_annual_rate(
        principal=financed,
        payment=client_rent,
        term_months=term_months,
        residual=residual,
    )

    client_schedule = generate_schedule(financed, client_rate, term_months, start, balloon=residual)
    investor_schedule = generate_schedule(financed, investor_annual_rate_pct, term_months, start)
    returns = allocate_returns(investor_schedule, investors)

    net = client_rent - fixed_cost
    flows = [net] * int(term_months)
    flows[-1] += residual

    return OperatorFlowResult(
        fixed_cost=fixed_cost,
        financial_margin=financial_margin,
        client_base_rent=client_rent,
        client_rate_pct=client_rate,
        residual_value=residual,
        client_schedule=client_schedule,
        investor_schedule=investor_schedule,
        investor_returns=returns,
        net_present_value=calculate_npv(0.0, flows, discount_rate_pct / 100.0 / 12.0),
        internal_rate_of_return=irr_options.solve(financed, flows).annualized(12),
        payback_period=payback_from_cash_flows(financed, [net] * int(term_months), interpolate=False),
        total_project_profit=net * term_months + residual,
    )
