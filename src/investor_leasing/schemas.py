"""
Request models for the HTTP API and the CLI.

Range checks mirror the calculator's input forms. The core functions do not
clamp or validate ranges themselves; these models are the boundary that does.
"""
from __future__ import annotations

from datetime import date

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from investor_leasing.config import Settings
from investor_leasing.errors import InvalidInputError
from investor_leasing.financing.loan import PaymentFrequency
from investor_leasing.investors.allocation import Investor, InvestorPolicy, validate_investors
from investor_leasing.leasing.model import LeasingInputs
from investor_leasing.scenario import BusinessParameters, LoanParameters, RenterConfig, Scenario


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InvestorIn(_Model):
    id: int | str | None = None
    name: str = Field(min_length=1)
    investment_amount: float = Field(ge=0)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class LoanParamsIn(_Model):
    loan_name: str | None = None
    principal: float = Field(gt=0, validation_alias=AliasChoices("principal", "totalAmount", "amount"))
    interest_rate: float = Field(ge=0, le=999)
    term_months: int = Field(ge=1, le=1200)
    start_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY

    @field_validator("payment_frequency", mode="before")
    @classmethod
    def _parse_frequency(cls, v: object) -> PaymentFrequency:
        try:
            return PaymentFrequency.parse(v)  # type: ignore[arg-type]
        except InvalidInputError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def _term_fits_frequency(self) -> "LoanParamsIn":
        mpp = self.payment_frequency.months_per_period
        if self.term_months % mpp != 0:
            raise ValueError(
                f"term of {self.term_months} months is not a multiple of {mpp} for {self.payment_frequency.value} payments"
            )
        return self

    def to_core(self) -> LoanParameters:
        return LoanParameters(
            principal=self.principal,
            annual_interest_rate=self.interest_rate,
            term_months=self.term_months,
            start_date=self.start_date,
            payment_frequency=self.payment_frequency,
        )


class BusinessParamsIn(_Model):
    asset_cost: float = Field(ge=0, le=100_000_000)
    other_expenses: float = Field(default=0.0, ge=0, le=1_000_000)
    monthly_expenses: float = Field(default=0.0, ge=0, le=1_000_000)
    lessor_profit_margin_pct: float = Field(default=0.0, ge=0, le=100)
    fixed_monthly_fee: float = Field(default=0.0, ge=0)
    admin_commission_pct: float = Field(default=0.0, ge=0, le=10)
    security_deposit_months: float = Field(default=0.0, ge=0, le=12)
    delivery_costs: float = Field(default=0.0, ge=0)
    residual_value_rate: float = Field(default=0.0, ge=0, le=100)
    discount_rate: float = Field(default=0.0, ge=0, le=50)

    def to_core(self) -> BusinessParameters:
        return BusinessParameters(**self.model_dump())


class RenterConfigIn(_Model):
    discount_rate: float | None = Field(default=None, ge=0, le=50)
    residual_value_rate: float | None = Field(default=None, ge=0, le=100)

    def to_core(self) -> RenterConfig:
        return RenterConfig(discount_rate=self.discount_rate, residual_value_rate=self.residual_value_rate)


class CalculateRequest(_Model):
    name: str | None = None
    loan_params: LoanParamsIn
    investors: list[InvestorIn] = Field(default_factory=list)
    business_params: BusinessParamsIn | None = None
    renter_config: RenterConfigIn | None = None
    down_payment: float = Field(default=0.0, ge=0)
    client_annual_rate_pct: float | None = Field(default=None, ge=0, le=999)

    def to_scenario(self, settings: Settings) -> Scenario:
        """Apply the configured roster and minimum-amount rules, then build the core scenario."""
        loan = self.loan_params.to_core()
        if loan.principal < settings.min_principal:
            raise InvalidInputError(f"loan amount must be at least {settings.min_principal:.2f}")
        investors = tuple(
            Investor(
                id=str(inv.id if inv.id is not None else i + 1),
                name=inv.name,
                investment_amount=inv.investment_amount,
            )
            for i, inv in enumerate(self.investors)
        )
        policy = InvestorPolicy(
            min_investors=settings.min_investors,
            max_investors=settings.max_investors,
            tolerance=settings.investment_tolerance,
        )
        validate_investors(investors, loan.principal, policy)
        business = self.business_params.to_core() if self.business_params is not None else None
        if business is not None and self.down_payment > business.asset_cost:
            raise InvalidInputError("down payment must not exceed the asset cost")
        return Scenario(
            name=self.name or self.loan_params.loan_name or "Untitled scenario",
            loan=loan,
            investors=investors,
            business=business,
            renter=self.renter_config.to_core() if self.renter_config is not None else RenterConfig(),
            down_payment=self.down_payment,
            client_annual_rate_pct=self.client_annual_rate_pct,
        )


class LeasingRequest(_Model):
    start_date: date
    asset_cost: float = Field(gt=0, le=100_000_000)
    lease_term_months: int = Field(ge=1, le=1200)
    investor_loan_amount: float = Field(ge=0)
    investor_annual_rate_pct: float = Field(ge=0, le=999)
    client_annual_rate_pct: float = Field(ge=0, le=999)
    down_payment: float = Field(default=0.0, ge=0)
    lessor_profit_margin_pct: float = Field(default=0.0, ge=0, le=100)
    fixed_monthly_fee: float = Field(default=0.0, ge=0)
    admin_commission_pct: float = Field(default=0.0, ge=0, le=10)
    security_deposit_months: float = Field(default=0.0, ge=0, le=12)
    delivery_costs: float = Field(default=0.0, ge=0)
    other_initial_expenses: float = Field(default=0.0, ge=0, le=1_000_000)
    monthly_operational_expenses: float = Field(default=0.0, ge=0, le=1_000_000)
    residual_value_rate: float = Field(default=0.0, ge=0, le=100)
    discount_rate: float = Field(default=0.0, ge=0, le=50)

    @model_validator(mode="after")
    def _down_payment_within_cost(self) -> "LeasingRequest":
        if self.down_payment > self.asset_cost:
            raise ValueError("down payment must not exceed the asset cost")
        return self

    def to_core(self) -> tuple[LeasingInputs, date]:
        values = self.model_dump(exclude={"start_date"})
        return LeasingInputs(**values), self.start_date


class MetricsRequest(_Model):
    principal: float = Field(gt=0)
    annual_rate_pct: float = Field(ge=0, le=999)
    term_months: int = Field(ge=1, le=1200)
    payment: float | None = None
    asset_value: float | None = Field(default=None, ge=0)
    annual_revenue: float | None = Field(default=None, ge=0)
    discount_rate_pct: float | None = Field(default=None, ge=0, le=50)


class UserSettingsIn(_Model):
    investors: list[InvestorIn] = Field(default_factory=list)
    business_params: BusinessParamsIn | None = None
    renter_config: RenterConfigIn | None = None
