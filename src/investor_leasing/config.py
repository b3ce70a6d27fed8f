from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from investor_leasing.metrics.engine import IrrOptions

ENV_PREFIX = "INVESTOR_LEASING_"


class Settings(BaseModel):
    """
    Runtime knobs shared by the CLI, the HTTP server and the boundary schemas.
    The pure calculation functions take these as explicit arguments.
    """

    model_config = ConfigDict(frozen=True)

    # Investor roster rules (entry points disagreed historically; keep them configurable).
    min_investors: int = Field(default=1, ge=0, description="Minimum investors per scenario.")
    max_investors: int = Field(default=20, ge=1, description="Maximum investors per scenario.")
    investment_tolerance: float = Field(
        default=0.01,
        ge=0,
        description="Allowed gap between the investor total and the loan principal.",
    )
    min_principal: float = Field(default=1000.0, ge=0, description="Smallest loan amount accepted at the API.")

    # IRR bisection bracket, expressed as a periodic rate.
    irr_lower: float = Field(default=-0.99, gt=-1.0)
    irr_upper: float = Field(default=10.0, gt=0.0)
    irr_max_iterations: int = Field(default=200, ge=1, le=10_000)
    irr_tolerance: float = Field(default=1e-12, gt=0, le=1e-2)

    database_url: str = Field(
        default="sqlite:///investor_leasing.sqlite3",
        description="SQLAlchemy URL for saved calculations and user settings.",
    )
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.min_investors > self.max_investors:
            raise ValueError("min_investors must be <= max_investors")
        if self.irr_lower >= self.irr_upper:
            raise ValueError("irr_lower must be < irr_upper")
        return self

    def irr_options(self) -> IrrOptions:
        return IrrOptions(
            lower=self.irr_lower,
            upper=self.irr_upper,
            tol=self.irr_tolerance,
            max_iterations=self.irr_max_iterations,
        )


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from INVESTOR_LEASING_* variables; unset keys keep their defaults."""
    env = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for name in Settings.model_fields:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()
    return Settings(**values)
