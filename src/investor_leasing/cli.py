from __future__ import annotations

import argparse
import json
import os
from typing import Any

import pandas as pd

from investor_leasing.config import Settings, load_settings
from investor_leasing.errors import FinancialModelError
from investor_leasing.financing.loan import PaymentFrequency, calculate_monthly_payment, generate_schedule
from investor_leasing.financing.reporting import group_payments_by_year, schedule_to_frame, summarize_schedule
from investor_leasing.investors.allocation import Investor, InvestorPolicy, allocate_returns, validate_investors
from investor_leasing.leasing.model import LeasingInputs, calculate_leasing_financials
from investor_leasing.leasing.operator_flow import calculate_operator_flow
from investor_leasing.logging_config import configure_logging
from investor_leasing.metrics.engine import calculate_investment_metrics
from investor_leasing.projections.generators import (
    QuarterlyAssumptions,
    generate_financial_projections,
    generate_quarterly_performance,
)
from investor_leasing.serialization import to_jsonable


def _mkdirp(path: str) -> None:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)


def _print(out: Any) -> None:
    print(json.dumps(to_jsonable(out), indent=2, sort_keys=True))


def _schedule_from_args(args: argparse.Namespace):
    return generate_schedule(
        args.principal,
        args.rate,
        args.term_months,
        args.start_date,
        args.frequency,
        balloon=args.balloon,
    )


def _parse_investor(text: str, index: int) -> Investor:
    name, sep, amount = text.rpartition(":")
    if not sep or not name.strip():
        raise SystemExit(f"--investor must look like NAME:AMOUNT, got {text!r}")
    try:
        value = float(amount)
    except ValueError as e:
        raise SystemExit(f"--investor amount must be a number: {text!r}") from e
    return Investor(id=str(index + 1), name=name.strip(), investment_amount=value)


def _load_investors(args: argparse.Namespace) -> list[Investor]:
    if args.investors_csv:
        df = pd.read_csv(args.investors_csv)
        missing = {"name", "investment_amount"} - set(df.columns)
        if missing:
            raise SystemExit(f"{args.investors_csv} is missing columns: {sorted(missing)}")
        ids = df["id"].astype(str) if "id" in df.columns else pd.Series(range(1, len(df) + 1)).astype(str)
        return [
            Investor(id=i, name=str(n), investment_amount=float(a))
            for i, n, a in zip(ids, df["name"], df["investment_amount"])
        ]
    return [_parse_investor(s, i) for i, s in enumerate(args.investor or [])]


def _policy(settings: Settings) -> InvestorPolicy:
    return InvestorPolicy(
        min_investors=settings.min_investors,
        max_investors=settings.max_investors,
        tolerance=settings.investment_tolerance,
    )


def cmd_schedule(args: argparse.Namespace) -> int:
    schedule = _schedule_from_args(args)
    out: dict[str, Any] = {"summary": summarize_schedule(schedule)}
    if args.out_csv:
        _mkdirp(args.out_csv)
        schedule_to_frame(schedule).to_csv(args.out_csv, index=False)
        out["out_csv"] = args.out_csv
    if args.by_year:
        yearly = group_payments_by_year(schedule)
        out["by_year"] = [
            {"year": int(r.year), "principal": float(r.principal), "interest": float(r.interest)}
            for r in yearly.itertuples(index=False)
        ]
    if not args.out_csv and not args.by_year:
        out["schedule"] = schedule
    _print(out)
    return 0


def cmd_allocate(args: argparse.Namespace) -> int:
    investors = _load_investors(args)
    if not args.skip_validation:
        validate_investors(investors, args.principal, _policy(args.settings))
    schedule = _schedule_from_args(args)
    returns = allocate_returns(schedule, investors)
    out = {
        "summary": summarize_schedule(schedule),
        "investor_returns": [
            {
                "investor_id": r.investor_id,
                "name": r.name,
                "investment_amount": r.investment_amount,
                "share": r.share,
                "first_period_return": r.monthly_returns[0] if r.monthly_returns else 0.0,
                "total_interest": r.total_interest,
                "total_return": r.total_return,
                "roi": r.roi,
            }
            for r in returns
        ],
    }
    _print(out)
    return 0


def cmd_lease(args: argparse.Namespace) -> int:
    inputs = LeasingInputs(
        asset_cost=args.asset_cost,
        lease_term_months=args.term_months,
        investor_loan_amount=args.loan_amount if args.loan_amount is not None else args.asset_cost - args.down_payment,
        investor_annual_rate_pct=args.investor_rate,
        client_annual_rate_pct=args.client_rate,
        down_payment=args.down_payment,
        lessor_profit_margin_pct=args.margin_pct,
        fixed_monthly_fee=args.fixed_monthly_fee,
        admin_commission_pct=args.admin_commission_pct,
        security_deposit_months=args.deposit_months,
        delivery_costs=args.delivery_costs,
        other_initial_expenses=args.other_expenses,
        monthly_operational_expenses=args.monthly_expenses,
        residual_value_rate=args.residual_value_rate,
        discount_rate=args.discount_rate,
    )
    result = calculate_leasing_financials(inputs, args.start_date, irr_options=args.settings.irr_options())
    if args.out_csv:
        _mkdirp(args.out_csv)
        pd.DataFrame([to_jsonable(e) for e in result.cash_flow_schedule]).to_csv(args.out_csv, index=False)
    out = to_jsonable(result)
    if not args.full:
        out.pop("cash_flow_schedule")
        out.pop("loan_amortization_schedule")
    _print(out)
    return 0


def cmd_operator_flow(args: argparse.Namespace) -> int:
    investors = _load_investors(args)
    financed = args.asset_cost - args.down_payment
    if investors and not args.skip_validation:
        validate_investors(investors, financed, _policy(args.settings))
    result = calculate_operator_flow(
        asset_cost=args.asset_cost,
        down_payment=args.down_payment,
        investor_annual_rate_pct=args.investor_rate,
        term_months=args.term_months,
        start_date=args.start_date,
        investors=investors,
        financial_margin=args.financial_margin,
        residual_value_rate=args.residual_value_rate,
        discount_rate_pct=args.discount_rate,
        irr_options=args.settings.irr_options(),
    )
    out = to_jsonable(result)
    if not args.full:
        out.pop("client_schedule")
        out.pop("investor_schedule")
        for r in out["investor_returns"]:
            r.pop("monthly_returns")
    _print(out)
    return 0


def cmd_metrics(args: argparse.Namespace) -> int:
    payment = args.payment
    if payment is None:
        payment = calculate_monthly_payment(args.principal, args.rate, args.term_months)
    metrics = calculate_investment_metrics(
        args.principal,
        args.rate,
        args.term_months,
        payment,
        args.asset_value,
        args.annual_revenue,
        discount_rate_pct=args.discount_rate,
        expense_ratio=args.expense_ratio,
        irr_options=args.settings.irr_options(),
    )
    _print({"payment": payment, "metrics": metrics})
    return 0


def cmd_project(args: argparse.Namespace) -> int:
    rows = generate_financial_projections(
        args.principal,
        args.base_cash_flow,
        args.growth_rate,
        args.discount_rate,
        args.years,
        irr_options=args.settings.irr_options(),
    )
    _print({"projections": rows})
    return 0


def cmd_quarterly(args: argparse.Namespace) -> int:
    assumptions = QuarterlyAssumptions(
        reserve_ratio=args.reserve_ratio,
        debt_service_rate=args.debt_service_rate,
        reserve_retention=args.reserve_retention,
        clamp_reserves=args.clamp_reserves,
    )
    rows = generate_quarterly_performance(
        args.principal,
        args.annual_revenue,
        args.annual_expenses,
        args.quarterly_growth_rate,
        args.years,
        assumptions,
    )
    _print({"quarters": rows})
    return 0


def _add_loan_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--principal", type=float, required=True)
    p.add_argument("--rate", type=float, required=True, help="Nominal annual rate in percent (e.g. 8.5).")
    p.add_argument("--term-months", type=int, required=True)
    p.add_argument("--start-date", required=True, help="YYYY-MM-DD")
    p.add_argument(
        "--frequency",
        default=PaymentFrequency.MONTHLY.value,
        choices=[f.value for f in PaymentFrequency],
    )
    p.add_argument("--balloon", type=float, default=0.0, help="Balance left outstanding after the last payment.")


def _add_investor_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--investors-csv", default=None, help="CSV with columns id,name,investment_amount.")
    p.add_argument("--investor", action="append", help="NAME:AMOUNT; repeat for each investor.")
    p.add_argument("--skip-validation", action="store_true", default=False)


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    settings = settings or load_settings()
    p = argparse.ArgumentParser(prog="investor-leasing")
    p.add_argument("--log-level", default=settings.log_level)
    p.set_defaults(settings=settings)
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("schedule", help="Amortization schedule for an investor loan.")
    _add_loan_args(s)
    s.add_argument("--out-csv", default=None)
    s.add_argument("--by-year", action="store_true", default=False, help="Roll principal and interest up by year.")
    s.set_defaults(func=cmd_schedule)

    a = sub.add_parser("allocate", help="Split each scheduled payment across investors.")
    _add_loan_args(a)
    _add_investor_args(a)
    a.set_defaults(func=cmd_allocate)

    le = sub.add_parser("lease", help="Client quotation, lessor cost and monthly cash flow of a lease.")
    le.add_argument("--asset-cost", type=float, required=True)
    le.add_argument("--term-months", type=int, required=True)
    le.add_argument("--start-date", required=True)
    le.add_argument("--investor-rate", type=float, required=True, help="Annual percent paid to investors.")
    le.add_argument("--client-rate", type=float, required=True, help="Annual percent charged to the client.")
    le.add_argument("--loan-amount", type=float, default=None, help="Defaults to asset cost minus down payment.")
    le.add_argument("--down-payment", type=float, default=0.0)
    le.add_argument("--margin-pct", type=float, default=0.0)
    le.add_argument("--fixed-monthly-fee", type=float, default=0.0)
    le.add_argument("--admin-commission-pct", type=float, default=0.0)
    le.add_argument("--deposit-months", type=float, default=0.0)
    le.add_argument("--delivery-costs", type=float, default=0.0)
    le.add_argument("--other-expenses", type=float, default=0.0)
    le.add_argument("--monthly-expenses", type=float, default=0.0)
    le.add_argument("--residual-value-rate", type=float, default=0.0, help="Percent of asset cost.")
    le.add_argument("--discount-rate", type=float, default=0.0, help="Annual percent.")
    le.add_argument("--out-csv", default=None, help="Write the monthly cash-flow schedule here.")
    le.add_argument("--full", action="store_true", default=False, help="Include schedules in the JSON output.")
    le.set_defaults(func=cmd_lease)

    op = sub.add_parser("operator-flow", help="Price a lease as investor payment plus a fixed monthly margin.")
    op.add_argument("--asset-cost", type=float, required=True)
    op.add_argument("--down-payment", type=float, default=0.0)
    op.add_argument("--investor-rate", type=float, required=True)
    op.add_argument("--term-months", type=int, required=True)
    op.add_argument("--start-date", required=True)
    op.add_argument("--financial-margin", type=float, required=True, help="Currency per month.")
    op.add_argument("--residual-value-rate", type=float, default=0.0)
    op.add_argument("--discount-rate", type=float, default=4.0)
    op.add_argument("--full", action="store_true", default=False)
    _add_investor_args(op)
    op.set_defaults(func=cmd_operator_flow)

    m = sub.add_parser("metrics", help="NPV, IRR, coverage ratios and payback for a loan.")
    m.add_argument("--principal", type=float, required=True)
    m.add_argument("--rate", type=float, required=True)
    m.add_argument("--term-months", type=int, required=True)
    m.add_argument("--payment", type=float, default=None, help="Defaults to the level monthly payment.")
    m.add_argument("--asset-value", type=float, default=None)
    m.add_argument("--annual-revenue", type=float, default=None)
    m.add_argument("--discount-rate", type=float, default=None, help="Annual percent; defaults to --rate.")
    m.add_argument("--expense-ratio", type=float, default=0.6)
    m.set_defaults(func=cmd_metrics)

    pj = sub.add_parser("project", help="Multi-year cash-flow projection.")
    pj.add_argument("--principal", type=float, required=True)
    pj.add_argument("--base-cash-flow", type=float, required=True)
    pj.add_argument("--growth-rate", type=float, required=True, help="Annual decimal (e.g. 0.05).")
    pj.add_argument("--discount-rate", type=float, required=True, help="Annual decimal.")
    pj.add_argument("--years", type=int, required=True)
    pj.set_defaults(func=cmd_project)

    q = sub.add_parser("quarterly", help="Quarterly revenue, expense and reserve projection.")
    q.add_argument("--principal", type=float, required=True)
    q.add_argument("--annual-revenue", type=float, required=True)
    q.add_argument("--annual-expenses", type=float, required=True)
    q.add_argument("--quarterly-growth-rate", type=float, required=True, help="Decimal per quarter.")
    q.add_argument("--years", type=int, required=True)
    q.add_argument("--reserve-ratio", type=float, default=0.10)
    q.add_argument("--debt-service-rate", type=float, default=0.03)
    q.add_argument("--reserve-retention", type=float, default=1.0)
    q.add_argument("--clamp-reserves", action="store_true", default=False)
    q.set_defaults(func=cmd_quarterly)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return int(args.func(args))
    except FinancialModelError as e:
        raise SystemExit(f"error: {e}") from e


if __name__ == "__main__":
    raise SystemExit(main())
