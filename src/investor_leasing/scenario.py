from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.loan import (
    PaymentFrequency,
    PaymentScheduleEntry,
    generate_schedule,
)
from investor_leasing.financing.reporting import ScheduleSummary, summarize_schedule
from investor_leasing.investors.allocation import Investor, InvestorReturn, allocate_returns
from investor_leasing.leasing.model import LeasingInputs, LeasingResult, calculate_leasing_financials
from investor_leasing.metrics.engine import InvestmentMetrics, IrrOptions, calculate_investment_metrics


@dataclass(frozen=True)
class LoanParameters:
    principal: float
    annual_interest_rate: float  # percent
    term_months: int
    start_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY


@dataclass(frozen=True)
class BusinessParameters:
    asset_cost: float
    other_expenses: float = 0.0
    monthly_expenses: float = 0.0
    lessor_profit_margin_pct: float = 0.0
    fixed_monthly_fee: float = 0.0
    admin_commission_pct: float = 0.0
    security_deposit_months: float = 0.0
    delivery_costs: float = 0.0
    residual_value_rate: float = 0.0
    discount_rate: float = 0.0


@dataclass(frozen=True)
class RenterConfig:
    # Overrides the business parameters' values for the operator analysis when set.
    discount_rate: float | None = None
    residual_value_rate: float | None = None


@dataclass(frozen=True)
class Scenario:
    name: str
    loan: LoanParameters
    investors: tuple[Investor, ...]
    business: BusinessParameters | None = None
    renter: RenterConfig = field(default_factory=RenterConfig)
    down_payment: float = 0.0
    client_annual_rate_pct: float | None = None  # defaults to the loan rate


@dataclass(frozen=True)
class ScenarioResult:
    schedule: tuple[PaymentScheduleEntry, ...]
    summary: ScheduleSummary
    investor_returns: tuple[InvestorReturn, ...]
    metrics: InvestmentMetrics
    leasing: LeasingResult | None

    @property
    def periodic_payment(self) -> float:
        return self.summary.periodic_payment

    @property
    def total_interest(self) -> float:
        return self.summary.total_interest

    @property
    def end_date(self) -> date | None:
        return self.summary.end_date


def leasing_inputs_for(scenario: Scenario) -> LeasingInputs:
    """Map a scenario onto the leasing model; the investor loan is the scenario's loan."""
    if scenario.business is None:
        raise InvalidInputError(f"scenario {scenario.name!r} has no business parameters")
    b = scenario.business
    loan = scenario.loan
    renter = scenario.renter
    client_rate = loan.annual_interest_rate if scenario.client_annual_rate_pct is None else scenario.client_annual_rate_pct
    return LeasingInputs(
        asset_cost=b.asset_cost,
        lease_term_months=loan.term_months,
        investor_loan_amount=loan.principal,
        investor_annual_rate_pct=loan.annual_interest_rate,
        client_annual_rate_pct=client_rate,
        down_payment=scenario.down_payment,
        lessor_profit_margin_pct=b.lessor_profit_margin_pct,
        fixed_monthly_fee=b.fixed_monthly_fee,
        admin_commission_pct=b.admin_commission_pct,
        security_deposit_months=b.security_deposit_months,
        delivery_costs=b.delivery_costs,
        other_initial_expenses=b.other_expenses,
        monthly_operational_expenses=b.monthly_expenses,
        residual_value_rate=b.residual_value_rate if renter.residual_value_rate is None else renter.residual_value_rate,
        discount_rate=b.discount_rate if renter.discount_rate is None else renter.discount_rate,
    )


def calculate_scenario(scenario: Scenario, *, irr_options: IrrOptions = IrrOptions()) -> ScenarioResult:
    loan = scenario.loan
    schedule = generate_schedule(
        loan.principal,
        loan.annual_interest_rate,
        loan.term_months,
        loan.start_date,
        loan.payment_frequency,
    )
    summary = summarize_schedule(schedule)
    returns = allocate_returns(schedule, scenario.investors)

    # Metrics assume monthly debt service; express the periodic payment per month.
    monthly_equivalent = summary.periodic_payment / PaymentFrequency.parse(loan.payment_frequency).months_per_period
    metrics = calculate_investment_metrics(
        loan.principal,
        loan.annual_interest_rate,
        loan.term_months,
        monthly_equivalent,
        asset_value=scenario.business.asset_cost if scenario.business is not None else None,
        irr_options=irr_options,
    )

    leasing = None
    if scenario.business is not None:
        leasing = calculate_leasing_financials(leasing_inputs_for(scenario), loan.start_date, irr_options=irr_options)

    return ScenarioResult(
        schedule=schedule,
        summary=summary,
        investor_returns=returns,
        metrics=metrics,
        leasing=leasing,
    )
