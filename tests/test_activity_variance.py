"""
Tests for Activity Budget Variance

Variance is actual - planned throughout; positive means over budget.
"""
import pytest

from plan_rollup.core.error_taxonomy import IssueCategory
from plan_rollup.data.entities import Activity, BudgetChapter, EntityStatus, Expense, ExpenseStatus
from plan_rollup.tools.activity_variance import (
    ActivityVarianceCalculator,
    ExpenseMatch,
    VarianceStatus,
    format_variance_message,
)
from plan_rollup.tools.budget_utilization import BudgetUtilizationClassifier
from tests.plan_fixtures import make_snapshot, sample_snapshot


class TestVariance:
    """Tests for the planned vs actual comparison."""

    def test_over_budget_activity(self):
        """2000 planned and 2500 spent is +500, 25%, Over Budget."""
        calc = ActivityVarianceCalculator(sample_snapshot())
        v = calc.variance("act-i1")

        assert v.planned_budget == 2000
        assert v.actual_spending == 2500
        assert v.variance == 500
        assert v.variance_percent == pytest.approx(25.0)
        assert v.remaining == -500
        assert v.status == VarianceStatus.OVER_BUDGET
        assert v.is_over_budget

    def test_within_budget_activity(self):
        calc = ActivityVarianceCalculator(sample_snapshot())
        v = calc.variance("act-direct")

        assert v.actual_spending == 850
        assert v.variance == -150
        assert v.variance_percent == pytest.approx(-15.0)
        assert v.remaining == 150
        assert v.status == VarianceStatus.WITHIN_BUDGET

    def test_exactly_on_budget_is_within(self):
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None, planned_budget=100)],
            expenses=[Expense(id="e", amount=100, activity_id="a")],
        )
        v = ActivityVarianceCalculator(snapshot).variance("a")

        assert v.variance == 0
        assert v.status == VarianceStatus.WITHIN_BUDGET

    def test_no_planned_budget(self):
        """Spend without a plan has a 0% variance percentage but is over budget."""
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None)],
            expenses=[Expense(id="e", amount=40, activity_id="a")],
        )
        v = ActivityVarianceCalculator(snapshot).variance("a")

        assert v.variance == 40
        assert v.variance_percent == 0
        assert v.status == VarianceStatus.OVER_BUDGET

    def test_rejected_expenses_are_ignored(self):
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None, planned_budget=100)],
            expenses=[Expense(id="e", amount=500, activity_id="a", status=ExpenseStatus.REJECTED)],
        )
        v = ActivityVarianceCalculator(snapshot).variance("a")

        assert v.actual_spending == 0

    def test_unknown_activity(self):
        calc = ActivityVarianceCalculator(sample_snapshot())
        v = calc.variance("nope")

        assert v.variance == 0
        assert v.status == VarianceStatus.WITHIN_BUDGET
        assert calc.issues.by_category(IssueCategory.UNKNOWN_ENTITY)

    def test_chapter_breakdown(self):
        calc = ActivityVarianceCalculator(sample_snapshot())

        assert calc.variance("act-i1").chapter_breakdown == {"02": 2500}


class TestExpenseMatching:
    """Expenses may link by activity ID, by activity code, or either."""

    def test_match_modes(self):
        calc = ActivityVarianceCalculator(sample_snapshot())

        assert calc.actual_spending("act-i1", ExpenseMatch.ID) == 1500
        assert calc.actual_spending("act-i1", ExpenseMatch.CODE) == 1000
        assert calc.actual_spending("act-i1", ExpenseMatch.EITHER) == 2500

    def test_expense_linked_both_ways_counts_once(self):
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None, code="A-1", planned_budget=10)],
            expenses=[Expense(id="e", amount=70, activity_id="a", activity_code="A-1")],
        )
        calc = ActivityVarianceCalculator(snapshot)

        assert calc.actual_spending("a") == 70
        assert calc.variance("a").expense_count == 1

    @pytest.mark.parametrize("match_by", [ExpenseMatch.ID, ExpenseMatch.EITHER])
    def test_expenses_sharing_an_id_both_count(self, match_by):
        """Two expense rows with the same ID are separate spend, as the chapter sees them."""
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None, budget_chapter_id="c", planned_budget=3000)],
            budget_chapters=[BudgetChapter(id="c", yearly_total_limit=5000)],
            expenses=[
                Expense(id="1", amount=1500, activity_id="a", budget_chapter_id="c"),
                Expense(id="1", amount=1000, activity_id="a", budget_chapter_id="c"),
            ],
        )
        calc = ActivityVarianceCalculator(snapshot)

        assert calc.actual_spending("a", match_by) == 2500
        assert calc.variance("a", match_by).expense_count == 2
        assert BudgetUtilizationClassifier(snapshot).spent("c") == 2500

    def test_default_match_from_constructor(self):
        calc = ActivityVarianceCalculator(sample_snapshot(), default_match="id")

        assert calc.actual_spending("act-i1") == 1500

    def test_parse_unknown_mode_falls_back(self):
        assert ExpenseMatch.parse("CODE") == ExpenseMatch.CODE
        assert ExpenseMatch.parse("bogus") == ExpenseMatch.EITHER


class TestAggregates:
    """Tests for lists and distributions across activities."""

    def test_over_budget_activities(self):
        calc = ActivityVarianceCalculator(sample_snapshot())

        assert [v.activity_id for v in calc.over_budget_activities()] == ["act-i1"]

    def test_actual_by_activity(self):
        calc = ActivityVarianceCalculator(sample_snapshot())

        assert calc.actual_by_activity() == {"act-i1": 2500, "act-direct": 850, "act-i3": 0}

    def test_spend_distribution(self):
        calc = ActivityVarianceCalculator(sample_snapshot())
        rows = {(r.activity_id, r.chapter_id): r for r in calc.spend_distribution()}

        assert set(rows) == {("act-i1", "ch2"), ("act-direct", "ch1")}
        portal = rows[("act-i1", "ch2")]
        assert portal.spent == 2500
        assert portal.share_of_chapter_limit == pytest.approx(50.0)
        assert portal.planned_share_of_chapter_limit == pytest.approx(40.0)

    def test_format_variance_message(self):
        calc = ActivityVarianceCalculator(sample_snapshot())
        message = format_variance_message(calc.all_variances())

        assert "Total Planned:  3,000.00" in message
        assert "Total Actual:   3,350.00" in message
        assert "Over budget:    1 of 3 activities" in message
        assert "ACT-I1 Portal development: +500.00 (+25.0%)" in message


class TestCancelledActivity:
    """A cancelled activity plans nothing, so any spend against it is over budget."""

    @pytest.fixture
    def snapshot(self):
        return make_snapshot(
            activities=[
                Activity(id="a", target_id=None, budget_chapter_id="c", planned_budget=2000,
                         status=EntityStatus.CANCELLED),
            ],
            budget_chapters=[BudgetChapter(id="c", yearly_total_limit=5000)],
            expenses=[Expense(id="e", amount=500, activity_id="a", budget_chapter_id="c")],
        )

    def test_variance_uses_zero_plan(self, snapshot):
        """Planned 2000 but cancelled with 500 spent is +500 and Over Budget."""
        v = ActivityVarianceCalculator(snapshot).variance("a")

        assert v.planned_budget == 0
        assert v.original_planned_budget == 2000
        assert v.actual_spending == 500
        assert v.variance == 500
        assert v.variance_percent == 0
        assert v.status == VarianceStatus.OVER_BUDGET

    def test_original_budget_in_dict(self, snapshot):
        """The stored budget stays visible alongside the effective one."""
        data = ActivityVarianceCalculator(snapshot).variance("a").to_dict()

        assert data["planned_budget"] == 0
        assert data["original_planned_budget"] == 2000

    def test_spend_distribution_plans_nothing(self, snapshot):
        """The planned share of a cancelled activity is 0."""
        (row,) = ActivityVarianceCalculator(snapshot).spend_distribution()

        assert row.spent == 500
        assert row.planned_share_of_chapter_limit == 0
