"""
Pure-leasing deal model.

Three views of one deal are computed independently and then combined:

- client quotation: what the lessee pays (rent, fees, initial payment)
- lessor cost: what the operator owes the investors who fund the asset
- profitability: the spread between the two over the term

The month-by-month cash flow also carries the lessee's buy-vs-lease
comparison (cumulative cost of leasing vs. down payment plus loan payments).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date

from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.dates import add_months, parse_date
from investor_leasing.financing.loan import (
    PaymentScheduleEntry,
    calculate_monthly_payment,
    generate_schedule,
    require_finite,
)
from investor_leasing.metrics.engine import IrrOptions, IrrResult, PaybackPeriod, payback_from_cash_flows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeasingInputs:
    asset_cost: float
    lease_term_months: int
    investor_loan_amount: float
    investor_annual_rate_pct: float
    client_annual_rate_pct: float
    down_payment: float = 0.0
    lessor_profit_margin_pct: float = 0.0
    fixed_monthly_fee: float = 0.0
    admin_commission_pct: float = 0.0
    security_deposit_months: float = 0.0
    delivery_costs: float = 0.0
    other_initial_expenses: float = 0.0
    monthly_operational_expenses: float = 0.0
    residual_value_rate: float = 0.0  # percent of asset cost
    discount_rate: float = 0.0  # annual percent


@dataclass(frozen=True)
class ClientQuotation:
    financed_amount: float
    base_rent_amortization: float
    base_rent_with_margin: float
    monthly_payment: float
    initial_payment: float
    total_rent: float


@dataclass(frozen=True)
class LessorCost:
    loan_amount: float
    monthly_payment: float
    total_debt_service: float


@dataclass(frozen=True)
class Profitability:
    gross_monthly_margin: float
    total_profit: float
    profit_margin_percentage: float


@dataclass(frozen=True)
class CashFlowEntry:
    month: int
    date: date
    cash_inflow: float
    cash_outflow: float
    net_cash_flow: float
    cumulative_cash_flow: float
    present_value: float
    cumulative_npv: float
    lease_cumulative_cost: float
    purchase_cumulative_cost: float


@dataclass(frozen=True)
class LeasingResult:
    # lessee side
    base_rent_amortization: float
    base_rent_with_margin: float
    lessor_monthly_profit: float
    total_monthly_rent_sans_iva: float
    initial_admin_commission: float
    initial_security_deposit: float
    initial_payment_sans_iva: float
    # operator side
    monthly_loan_payment: float
    net_monthly_cash_flow: float
    residual_value_amount: float
    net_present_value: float
    internal_rate_of_return: IrrResult
    payback_period: PaybackPeriod
    total_project_profit: float
    client_quotation: ClientQuotation
    lessor_cost: LessorCost
    profitability: Profitability
    cash_flow_schedule: tuple[CashFlowEntry, ...]
    loan_amortization_schedule: tuple[PaymentScheduleEntry, ...]


def _check_inputs(inputs: LeasingInputs) -> None:
    require_finite(**{f.name: getattr(inputs, f.name) for f in fields(inputs)})
    if inputs.asset_cost <= 0:
        raise InvalidInputError("asset_cost must be > 0")
    if inputs.lease_term_months <= 0 or int(inputs.lease_term_months) != inputs.lease_term_months:
        raise InvalidInputError("lease_term_months must be a positive whole number of months")
    if not 0 <= inputs.down_payment <= inputs.asset_cost:
        raise InvalidInputError("down_payment must be in [0, asset_cost]")
    if inputs.investor_loan_amount < 0:
        raise InvalidInputError("investor_loan_amount must be >= 0")


def quote_client(inputs: LeasingInputs) -> ClientQuotation:
    term = int(inputs.lease_term_months)
    financed = inputs.asset_cost - inputs.down_payment
    base = calculate_monthly_payment(financed, inputs.client_annual_rate_pct, term)
    with_margin = base * (1.0 + inputs.lessor_profit_margin_pct / 100.0)
    rent = with_margin + inputs.fixed_monthly_fee

    commission = inputs.asset_cost * inputs.admin_commission_pct / 100.0
    deposit = with_margin * inputs.security_deposit_months
    return ClientQuotation(
        financed_amount=financed,
        base_rent_amortization=base,
        base_rent_with_margin=with_margin,
        monthly_payment=rent,
        initial_payment=commission + deposit + inputs.delivery_costs,
        total_rent=rent * term,
    )


def cost_to_lessor(inputs: LeasingInputs) -> LessorCost:
    term = int(inputs.lease_term_months)
    pmt = calculate_monthly_payment(inputs.investor_loan_amount, inputs.investor_annual_rate_pct, term)
    return LessorCost(loan_amount=inputs.investor_loan_amount, monthly_payment=pmt, total_debt_service=pmt * term)


def assess_profitability(quote: ClientQuotation, cost: LessorCost, residual_value: float, term: int) -> Profitability:
    margin = quote.monthly_payment - cost.monthly_payment
    total = margin * term + residual_value
    pct = total / quote.total_rent * 100.0 if quote.total_rent != 0 else 0.0
    return Profitability(gross_monthly_margin=margin, total_profit=total, profit_margin_percentage=pct)


def _project_cash_flow(
    inputs: LeasingInputs,
    quote: ClientQuotation,
    cost: LessorCost,
    start: date,
    residual_value: float,
) -> tuple[CashFlowEntry, ...]:
    term = int(inputs.lease_term_months)
    monthly_discount = inputs.discount_rate / 100.0 / 12.0
    commission = inputs.asset_cost * inputs.admin_commission_pct / 100.0
    deposit = quote.base_rent_with_margin * inputs.security_deposit_months

    # Month 0: the investors' loan and the lessee's upfront money come in, the asset goes out.
    inflow0 = inputs.investor_loan_amount + commission + deposit
    outflow0 = inputs.asset_cost + inputs.delivery_costs + inputs.other_initial_expenses
    net0 = inflow0 - outflow0
    entries = [
        CashFlowEntry(
            month=0,
            date=start,
            cash_inflow=inflow0,
            cash_outflow=outflow0,
            net_cash_flow=net0,
            cumulative_cash_flow=net0,
            present_value=net0,
            cumulative_npv=net0,
            lease_cumulative_cost=quote.initial_payment,
            purchase_cumulative_cost=inputs.down_payment,
        )
    ]

    cumulative = net0
    cumulative_npv = net0
    for m in range(1, term + 1):
        inflow = quote.monthly_payment
        outflow = cost.monthly_payment + inputs.monthly_operational_expenses
        if m == term:
            # Residual value is recovered and the security deposit handed back.
            inflow += residual_value
            outflow += deposit
        net = inflow - outflow
        pv = net / (1.0 + monthly_discount) ** m
        cumulative += net
        cumulative_npv += pv
        entries.append(
            CashFlowEntry(
                month=m,
                date=add_months(start, m),
                cash_inflow=inflow,
                cash_outflow=outflow,
                net_cash_flow=net,
                cumulative_cash_flow=cumulative,
                present_value=pv,
                cumulative_npv=cumulative_npv,
                lease_cumulative_cost=quote.initial_payment + quote.monthly_payment * m,
                purchase_cumulative_cost=inputs.down_payment + cost.monthly_payment * m,
            )
        )
    return tuple(entries)


def calculate_leasing_financials(
    inputs: LeasingInputs,
    start_date: date | str,
    *,
    irr_options: IrrOptions = IrrOptions(),
) -> LeasingResult:
    _check_inputs(inputs)
    start = parse_date(start_date)
    term = int(inputs.lease_term_months)

    quote = quote_client(inputs)
    cost = cost_to_lessor(inputs)
    residual_value = inputs.asset_cost * inputs.residual_value_rate / 100.0
    profitability = assess_profitability(quote, cost, residual_value, term)

    cash_flow = _project_cash_flow(inputs, quote, cost, start, residual_value)
    loan_schedule = generate_schedule(
        inputs.investor_loan_amount,
        inputs.investor_annual_rate_pct,
        term,
        start,
    )

    operating = [e.net_cash_flow for e in cash_flow[1:]]
    irr = irr_options.solve(-cash_flow[0].net_cash_flow, operating).annualized(12)
    payback = payback_from_cash_flows(-cash_flow[0].net_cash_flow, operating)

    commission = inputs.asset_cost * inputs.admin_commission_pct / 100.0
    deposit = quote.base_rent_with_margin * inputs.security_deposit_months

    logger.debug(
        "leasing asset=%.2f term=%d rent=%.2f loan_payment=%.2f margin=%.2f",
        inputs.asset_cost,
        term,
        quote.monthly_payment,
        cost.monthly_payment,
        profitability.gross_monthly_margin,
    )
    return LeasingResult(
        base_rent_amortization=quote.base_rent_amortization,
        base_rent_with_margin=quote.base_rent_with_margin,
        lessor_monthly_profit=quote.base_rent_with_margin - quote.base_rent_amortization,
        total_monthly_rent_sans_iva=quote.monthly_payment,
        initial_admin_commission=commission,
        initial_security_deposit=deposit,
        initial_payment_sans_iva=quote.initial_payment,
        monthly_loan_payment=cost.monthly_payment,
        net_monthly_cash_flow=quote.monthly_payment - cost.monthly_payment - inputs.monthly_operational_expenses,
        residual_value_amount=residual_value,
        net_present_value=cash_flow[-1].cumulative_npv,
        internal_rate_of_return=irr,
        payback_period=payback,
        total_project_profit=cash_flow[-1].cumulative_cash_flow,
        client_quotation=quote,
        lessor_cost=cost,
        profitability=profitability,
        cash_flow_schedule=cash_flow,
        loan_amortization_schedule=loan_schedule,
    )
