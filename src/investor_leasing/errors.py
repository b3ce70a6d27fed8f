from __future__ import annotations


class FinancialModelError(ValueError):
    """Base class for input problems the calculation engine refuses to compute."""


class InvalidTermError(FinancialModelError):
    pass


class InvalidInputError(FinancialModelError):
    pass


class InvestorValidationError(FinancialModelError):
    pass


class ScenarioNotFoundError(KeyError):
    def __init__(self, scenario_id: object) -> None:
        super().__init__(scenario_id)
        self.scenario_id = scenario_id

    def __str__(self) -> str:
        return f"scenario {self.scenario_id!r} not found"
