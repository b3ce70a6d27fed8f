from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from investor_leasing.errors import InvestorValidationError
from investor_leasing.financing.loan import PaymentScheduleEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Investor:
    id: str
    name: str
    investment_amount: float


@dataclass(frozen=True)
class InvestorReturn:
    investor_id: str
    name: str
    investment_amount: float
    share: float
    monthly_returns: tuple[float, ...]
    total_interest: float
    total_return: float
    roi: float


@dataclass(frozen=True)
class InvestorPolicy:
    # Roster rules live at the boundary; allocate_returns never enforces them.
    min_investors: int = 1
    max_investors: int = 20
    tolerance: float = 0.01


def allocate_returns(
    schedule: Sequence[PaymentScheduleEntry],
    investors: Sequence[Investor],
) -> tuple[InvestorReturn, ...]:
    """
    Split each period's interest pro-rata by contribution.

    Shares are taken against the investors' own total rather than the nominal
    loan amount, so the per-period interest is fully partitioned even when the
    contributions are off by rounding.
    """
    total = float(sum(inv.investment_amount for inv in investors))
    if schedule and investors:
        principal = float(sum(e.principal for e in schedule)) + float(schedule[-1].balance)
        if abs(total - principal) > 0.01:
            logger.warning(
                "investor total %.2f differs from scheduled principal %.2f; shares follow the investor total",
                total,
                principal,
            )

    interest = [float(e.interest) for e in schedule]
    out: list[InvestorReturn] = []
    for inv in investors:
        amount = float(inv.investment_amount)
        share = amount / total if total > 0 else 0.0
        monthly = tuple(i * share for i in interest)
        total_interest = float(sum(monthly))
        out.append(
            InvestorReturn(
                investor_id=str(inv.id),
                name=inv.name,
                investment_amount=amount,
                share=share,
                monthly_returns=monthly,
                total_interest=total_interest,
                total_return=amount + total_interest,
                roi=total_interest / amount if amount > 0 else 0.0,
            )
        )
    return tuple(out)


def validate_investors(
    investors: Sequence[Investor],
    loan_amount: float,
    policy: InvestorPolicy = InvestorPolicy(),
) -> None:
    n = len(investors)
    if n < policy.min_investors:
        raise InvestorValidationError(f"at least {policy.min_investors} investor(s) required; got {n}")
    if n > policy.max_investors:
        raise InvestorValidationError(f"at most {policy.max_investors} investors allowed; got {n}")

    seen: set[str] = set()
    for inv in investors:
        if not inv.name or not inv.name.strip():
            raise InvestorValidationError(f"investor {inv.id!r} has an empty name")
        if inv.investment_amount < 0:
            raise InvestorValidationError(f"investor {inv.name!r} has a negative investment amount")
        key = str(inv.id)
        if key in seen:
            raise InvestorValidationError(f"duplicate investor id {key!r}")
        seen.add(key)

    total = float(sum(inv.investment_amount for inv in investors))
    if abs(total - float(loan_amount)) > policy.tolerance:
        raise InvestorValidationError(
            f"total investment {total:.2f} must match the loan amount {float(loan_amount):.2f}"
        )
