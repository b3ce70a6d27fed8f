from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Sequence

import pandas as pd

from investor_leasing.financing.loan import PaymentScheduleEntry

SCHEDULE_COLUMNS = ["payment_number", "date", "payment", "principal", "interest", "balance"]


@dataclass(frozen=True)
class ScheduleSummary:
    periodic_payment: float
    number_of_payments: int
    total_paid: float
    total_principal: float
    total_interest: float
    end_date: date | None


def schedule_to_frame(schedule: Sequence[PaymentScheduleEntry]) -> pd.DataFrame:
    if not schedule:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS)
    df = pd.DataFrame([asdict(e) for e in schedule], columns=SCHEDULE_COLUMNS)
    df["date"] = pd.to_datetime(df["date"])
    return df


def group_payments_by_year(schedule: Sequence[PaymentScheduleEntry]) -> pd.DataFrame:
    """Principal and interest paid per calendar year, in year order."""
    df = schedule_to_frame(schedule)
    if df.empty:
        return pd.DataFrame(columns=["year", "principal", "interest"])
    df["year"] = df["date"].dt.year
    out = df.groupby("year", sort=True)[["principal", "interest"]].sum().reset_index()
    return out


def summarize_schedule(schedule: Sequence[PaymentScheduleEntry]) -> ScheduleSummary:
    if not schedule:
        return ScheduleSummary(0.0, 0, 0.0, 0.0, 0.0, None)
    return ScheduleSummary(
        periodic_payment=float(schedule[0].payment),
        number_of_payments=len(schedule),
        total_paid=float(sum(e.payment for e in schedule)),
        total_principal=float(sum(e.principal for e in schedule)),
        total_interest=float(sum(e.interest for e in schedule)),
        end_date=schedule[-1].date,
    )
