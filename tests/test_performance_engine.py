"""
Tests for the Plan Performance Engine facade

The engine only wires calculators together, so these tests focus on the
contract (input checks, configuration, both completion paths side by side)
rather than re-testing each calculator.
"""
import pytest

from config.settings import AppConfig, BudgetConfig, CompletionConfig
from plan_rollup.core.error_taxonomy import (
    EngineContractError,
    IssueCategory,
    IssueSeverity,
)
from plan_rollup.core.performance_engine import PlanPerformanceEngine
from plan_rollup.data.entities import HierarchyLevel, PlanSnapshot
from plan_rollup.tools.activity_variance import ExpenseMatch, VarianceStatus
from plan_rollup.tools.budget_utilization import BudgetStatus
from plan_rollup.tools.rollup_aggregator import ProgressBand
from tests.plan_fixtures import make_snapshot, sample_snapshot


@pytest.fixture
def engine():
    return PlanPerformanceEngine(sample_snapshot(), config=AppConfig(
        budget=BudgetConfig(yellow_threshold=80, red_threshold=100, expense_match_mode="either"),
        completion=CompletionConfig(completion_cap=100),
    ))


class TestContract:
    """Input contract violations fail loudly."""

    def test_none_snapshot(self):
        with pytest.raises(EngineContractError) as exc_info:
            PlanPerformanceEngine(None)

        classified = exc_info.value.classify()
        assert classified.category == IssueCategory.CONTRACT_VIOLATION
        assert classified.severity == IssueSeverity.CRITICAL

    def test_missing_collection(self):
        snapshot = PlanSnapshot(expenses=None)

        with pytest.raises(EngineContractError) as exc_info:
            PlanPerformanceEngine(snapshot)
        assert exc_info.value.context["missing"] == ["expenses"]

    def test_empty_snapshot_is_valid(self):
        engine = PlanPerformanceEngine(make_snapshot())

        assert engine.progress_plan_completion() == 0
        assert engine.realization_plan_completion() == 0
        assert engine.chapter_utilizations() == []
        assert len(engine.issues) == 0

    def test_clean_snapshot_has_no_issues(self, engine):
        assert len(engine.issues) == 0


class TestCompletionPaths:
    """Both completion paths are exposed and never merged."""

    def test_progress_path(self, engine):
        assert engine.indicator_achieved("i1") == 30
        assert engine.indicator_over_performance("i3") == pytest.approx(200.0)
        assert engine.progress_indicator_completion("i3") == 100
        assert engine.progress_target_completion("t1") == pytest.approx(50.0)
        assert engine.progress_objective_completion("o1") == pytest.approx(75.0)
        assert engine.progress_area_completion("a1") == pytest.approx(75.0)
        assert engine.progress_plan_completion() == pytest.approx(75.0)

    def test_realization_path(self, engine):
        assert engine.realization_activity_completion("act-i1") == pytest.approx(40.0)
        assert engine.realization_latest_activity_completion("act-i1") == 50
        assert engine.realization_indicator_completion("i1") == pytest.approx(40.0)
        assert engine.realization_target_completion("t1") == pytest.approx(45.0)
        assert engine.realization_objective_completion("o1") == pytest.approx(62.5)
        assert engine.realization_area_completion("a1") == pytest.approx(62.5)
        assert engine.realization_plan_completion() == pytest.approx(62.5)

    def test_breakdowns(self, engine):
        progress = engine.progress_breakdown("a1")
        realization = engine.realization_breakdown("a1")

        assert progress[0].completion == pytest.approx(75.0)
        assert realization[0].completion == pytest.approx(62.5)

    def test_stored_area_completion(self, engine):
        """Stored literals average with missing values counted as 0."""
        assert engine.stored_area_completion("a1") == pytest.approx(20.0)
        assert engine.stored_area_completion("a2") == 0

    def test_progress_band(self, engine):
        assert engine.progress_band(62.5) == ProgressBand.MODERATE

    def test_completion_cap_from_config(self):
        engine = PlanPerformanceEngine(sample_snapshot(), config=AppConfig(
            completion=CompletionConfig(completion_cap=250),
        ))

        assert engine.progress_indicator_completion("i3") == pytest.approx(200.0)

    def test_path_to_root(self, engine):
        path = engine.path_to_root(HierarchyLevel.INDICATOR, "i3")

        assert [e.id for e in path] == ["a1", "o1", "t2", "i3"]


class TestBudget:
    """Budget operations through the facade."""

    def test_chapter_utilization(self, engine):
        u = engine.chapter_utilization("ch1")

        assert u.spent == 850
        assert u.percentage == pytest.approx(85.0)
        assert u.status == BudgetStatus.YELLOW
        assert u.remaining == 150
        assert [c.chapter_id for c in engine.critical_chapters()] == ["ch1"]

    def test_thresholds_from_config(self):
        engine = PlanPerformanceEngine(sample_snapshot(), config=AppConfig(
            budget=BudgetConfig(yellow_threshold=40, red_threshold=60),
        ))

        assert engine.chapter_utilization("ch1").status == BudgetStatus.RED
        assert engine.chapter_utilization("ch2").status == BudgetStatus.YELLOW

    def test_activity_variance(self, engine):
        v = engine.activity_variance("act-i1")

        assert v.variance == 500
        assert v.status == VarianceStatus.OVER_BUDGET
        assert engine.activity_variance("act-i1", ExpenseMatch.ID).status == VarianceStatus.WITHIN_BUDGET
        assert [x.activity_id for x in engine.over_budget_activities()] == ["act-i1"]
        assert len(engine.activity_variances()) == 3

    def test_match_mode_from_config(self):
        engine = PlanPerformanceEngine(sample_snapshot(), config=AppConfig(
            budget=BudgetConfig(expense_match_mode="code"),
        ))

        assert engine.activity_variance("act-i1").actual_spending == 1000

    def test_chapter_plan(self, engine):
        plan = engine.chapter_plan("ch1")

        assert plan.planned_total == 1000
        assert plan.actual_total == 850
        assert plan.variance == -150
        assert plan.allocation_percent == pytest.approx(100.0)

    def test_spend_distribution(self, engine):
        rows = engine.spend_distribution()

        assert {(r.activity_id, r.chapter_code) for r in rows} == {("act-i1", "02"), ("act-direct", "01")}
