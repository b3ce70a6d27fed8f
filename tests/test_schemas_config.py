from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from investor_leasing.config import Settings, load_settings
from investor_leasing.errors import InvalidInputError, InvestorValidationError
from investor_leasing.financing.loan import PaymentFrequency
from investor_leasing.logging_config import configure_logging
from investor_leasing.metrics.engine import IrrOptions
from investor_leasing.schemas import CalculateRequest, LeasingRequest


def _body(**overrides):
    body = {
        "loanParams": {
            "totalAmount": 150_000,
            "interestRate": 8.5,
            "termMonths": 48,
            "startDate": "2024-01-01",
            "paymentFrequency": "monthly",
        },
        "investors": [
            {"name": "Investor 1", "investmentAmount": 75_000},
            {"name": "Investor 2", "investmentAmount": 45_000},
            {"name": "Investor 3", "investmentAmount": 30_000},
        ],
    }
    body.update(overrides)
    return body


def test_settings_defaults_and_env():
    assert load_settings({}) == Settings()
    s = load_settings({"INVESTOR_LEASING_MIN_INVESTORS": "3", "INVESTOR_LEASING_DATABASE_URL": "sqlite://"})
    assert s.min_investors == 3
    assert s.database_url == "sqlite://"


def test_settings_reject_inverted_ranges():
    with pytest.raises(ValidationError):
        load_settings({"INVESTOR_LEASING_MIN_INVESTORS": "30"})
    with pytest.raises(ValidationError):
        Settings(irr_lower=1.0, irr_upper=0.5)


def test_calculate_request_builds_scenario():
    scenario = CalculateRequest.model_validate(_body()).to_scenario(Settings())
    assert scenario.loan.principal == 150_000
    assert scenario.loan.payment_frequency is PaymentFrequency.MONTHLY
    assert [i.id for i in scenario.investors] == ["1", "2", "3"]
    assert scenario.business is None


def test_calculate_request_accepts_snake_case():
    body = {
        "loan_params": {"principal": 10_000, "interest_rate": 5, "term_months": 12, "start_date": "2024-01-01"},
        "investors": [{"name": "A", "investment_amount": 10_000}],
    }
    scenario = CalculateRequest.model_validate(body).to_scenario(Settings())
    assert scenario.loan.term_months == 12


def test_term_must_fit_frequency():
    body = _body()
    body["loanParams"]["paymentFrequency"] = "quarterly"
    body["loanParams"]["termMonths"] = 10
    with pytest.raises(ValidationError):
        CalculateRequest.model_validate(body)


def test_unknown_frequency_is_a_validation_error():
    body = _body()
    body["loanParams"]["paymentFrequency"] = "weekly"
    with pytest.raises(ValidationError):
        CalculateRequest.model_validate(body)


def test_investor_rules_come_from_settings():
    req = CalculateRequest.model_validate(
        _body(investors=[{"name": "Solo", "investmentAmount": 150_000}])
    )
    req.to_scenario(Settings())
    with pytest.raises(InvestorValidationError):
        req.to_scenario(Settings(min_investors=3))


def test_investor_total_must_match_principal():
    req = CalculateRequest.model_validate(_body(investors=[{"name": "A", "investmentAmount": 100_000}]))
    with pytest.raises(InvestorValidationError):
        req.to_scenario(Settings())


def test_minimum_principal():
    body = _body(investors=[{"name": "A", "investmentAmount": 500}])
    body["loanParams"]["totalAmount"] = 500
    with pytest.raises(InvalidInputError):
        CalculateRequest.model_validate(body).to_scenario(Settings())


def test_range_checks():
    with pytest.raises(ValidationError):
        CalculateRequest.model_validate(_body(businessParams={"assetCost": 150_000, "discountRate": 80}))
    with pytest.raises(ValidationError):
        LeasingRequest.model_validate(
            {
                "startDate": "2024-01-01",
                "assetCost": 100_000,
                "leaseTermMonths": 36,
                "investorLoanAmount": 100_000,
                "investorAnnualRatePct": 8,
                "clientAnnualRatePct": 12,
                "downPayment": 120_000,
            }
        )


def test_leasing_request_to_core():
    inputs, start = LeasingRequest.model_validate(
        {
            "startDate": "2024-01-01",
            "assetCost": 100_000,
            "leaseTermMonths": 36,
            "investorLoanAmount": 100_000,
            "investorAnnualRatePct": 8,
            "clientAnnualRatePct": 12,
            "securityDepositMonths": 2,
        }
    ).to_core()
    assert inputs.security_deposit_months == 2
    assert start.isoformat() == "2024-01-01"


def test_configure_logging_is_idempotent():
    logger = configure_logging("DEBUG")
    n = len(logger.handlers)
    assert configure_logging("warning") is logger
    assert len(logger.handlers) == n
    assert logger.level == logging.WARNING
    with pytest.raises(ValueError):
        configure_logging("chatty")


def test_settings_build_irr_options():
    assert Settings().irr_options() == IrrOptions()
    opts = load_settings({"INVESTOR_LEASING_IRR_MAX_ITERATIONS": "7", "INVESTOR_LEASING_IRR_UPPER": "2"}).irr_options()
    assert opts.max_iterations == 7
    assert opts.upper == 2.0
