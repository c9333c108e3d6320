"""
Engine configuration.

Passed explicitly into the processor and calculators; defaults match the
business rules, and a few can be overridden from the environment.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_LEVEL_RATES = (200, 150, 100, 50, 50, 50, 50, 25, 25)
DEFAULT_PERSONAL_RATES = (200, 300, 400, 500, 600, 700, 800, 900, 1000)


@dataclass(frozen=True)
class EngineConfig:
    """Business constants for stage, commission and payment rules."""

    # Cumulative event counts required for stages 3..9
    stage_thresholds: tuple = (18, 72, 288, 1152, 4608, 9216, 18432)
    stage_two_recruits: int = 6
    max_stage: int = 9
    max_levels: int = 9

    payment_due_working_days: int = 15
    first_payment_fraction: Decimal = Decimal("0.10")
    default_investment_buyback_months: int = 36
    default_sale_buyback_months: int = 0

    top_earners_count: int = 4

    fallback_level_rates: tuple = field(default=tuple(Decimal(r) for r in DEFAULT_LEVEL_RATES))
    fallback_personal_rates: tuple = field(default=tuple(Decimal(r) for r in DEFAULT_PERSONAL_RATES))

    @property
    def fallback_rates(self) -> dict:
        return {
            "levelRates": list(self.fallback_level_rates),
            "personalRates": list(self.fallback_personal_rates),
        }

    @classmethod
    def from_env(cls, environ=None) -> "EngineConfig":
        """Build a config, overriding defaults with any set environment variables."""
        env = os.environ if environ is None else environ
        overrides = {}

        if env.get("PAYMENT_DUE_WORKING_DAYS"):
            overrides["payment_due_working_days"] = int(env["PAYMENT_DUE_WORKING_DAYS"])
        if env.get("FIRST_PAYMENT_PERCENT"):
            overrides["first_payment_fraction"] = Decimal(env["FIRST_PAYMENT_PERCENT"]) / Decimal("100")
        if env.get("DEFAULT_BUYBACK_MONTHS"):
            overrides["default_investment_buyback_months"] = int(env["DEFAULT_BUYBACK_MONTHS"])
        if env.get("TOP_EARNERS_COUNT"):
            overrides["top_earners_count"] = int(env["TOP_EARNERS_COUNT"])

        return cls(**overrides)
