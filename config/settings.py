"""
Configuration settings for the Strategic Plan Roll-Up Engine.

Key Design Principle: thresholds and modes come from environment variables,
never hardcoded at call sites.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Any


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {raw!r}")


@dataclass
class BudgetConfig:
    """Budget status band thresholds, in percent of the chapter limit."""
    yellow_threshold: float = field(
        default_factory=lambda: _float_env("BUDGET_YELLOW_THRESHOLD", "80")
    )
    red_threshold: float = field(
        default_factory=lambda: _float_env("BUDGET_RED_THRESHOLD", "100")
    )
    # How expenses link to activities: "id", "code" or "either"
    expense_match_mode: str = field(
        default_factory=lambda: os.getenv("EXPENSE_MATCH_MODE", "either")
    )

    def __post_init__(self):
        if self.yellow_threshold > self.red_threshold:
            raise ValueError(
                f"BUDGET_YELLOW_THRESHOLD ({self.yellow_threshold}) must not exceed "
                f"BUDGET_RED_THRESHOLD ({self.red_threshold})"
            )


@dataclass
class CompletionConfig:
    """Completion percentage settings."""
    # Indicator completion never reports above this value
    completion_cap: float = field(
        default_factory=lambda: _float_env("COMPLETION_CAP", "100")
    )


@dataclass
class AppConfig:
    """Main application configuration."""
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "budget_yellow_threshold": self.budget.yellow_threshold,
            "budget_red_threshold": self.budget.red_threshold,
            "expense_match_mode": self.budget.expense_match_mode,
            "completion_cap": self.completion.completion_cap,
            "log_level": self.log_level,
        }


def get_config() -> AppConfig:
    """Factory function to get application configuration."""
    return AppConfig()
