"""
Tests for environment-driven configuration
"""
import pytest

from config.settings import AppConfig, BudgetConfig, get_config


class TestConfig:
    """Thresholds and modes come from the environment."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("BUDGET_YELLOW_THRESHOLD", "BUDGET_RED_THRESHOLD", "COMPLETION_CAP",
                     "EXPENSE_MATCH_MODE", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        config = get_config()

        assert config.budget.yellow_threshold == 80
        assert config.budget.red_threshold == 100
        assert config.budget.expense_match_mode == "either"
        assert config.completion.completion_cap == 100
        assert config.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BUDGET_YELLOW_THRESHOLD", "70")
        monkeypatch.setenv("BUDGET_RED_THRESHOLD", "95.5")
        monkeypatch.setenv("EXPENSE_MATCH_MODE", "code")
        monkeypatch.setenv("COMPLETION_CAP", "120")

        config = get_config()

        assert config.budget.yellow_threshold == 70
        assert config.budget.red_threshold == 95.5
        assert config.budget.expense_match_mode == "code"
        assert config.completion.completion_cap == 120

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("BUDGET_RED_THRESHOLD", "lots")

        with pytest.raises(ValueError, match="BUDGET_RED_THRESHOLD"):
            get_config()

    def test_yellow_above_red_is_rejected(self):
        with pytest.raises(ValueError):
            BudgetConfig(yellow_threshold=90, red_threshold=80)

    def test_to_dict(self):
        data = AppConfig().to_dict()

        assert data["budget_yellow_threshold"] == 80
        assert set(data) == {
            "budget_yellow_threshold",
            "budget_red_threshold",
            "expense_match_mode",
            "completion_cap",
            "log_level",
        }
