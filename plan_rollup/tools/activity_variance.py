"""
Activity Budget Variance

Compares each activity's planned budget with what was actually spent.

Sign convention (used everywhere in this package):
    variance  = actual - planned   (positive means over budget)
    remaining = planned - actual

An activity is OVER_BUDGET exactly when variance > 0.

Expenses link to activities either by activity ID or by the denormalized
activity code; both keys are supported and the match mode is selectable
per call.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.core.numeric import number_or_zero, safe_percentage, to_number
from plan_rollup.data.entities import Activity, BudgetChapter, Expense, PlanSnapshot

logger = logging.getLogger(__name__)


class VarianceStatus(Enum):
    """Classification of an activity's variance."""
    OVER_BUDGET = "Over Budget"
    WITHIN_BUDGET = "Within Budget"


class ExpenseMatch(Enum):
    """Which key links an expense to an activity."""
    ID = "id"
    CODE = "code"
    EITHER = "either"

    @classmethod
    def parse(cls, value) -> "ExpenseMatch":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown expense match mode {value!r}; using 'either'")
            return cls.EITHER


@dataclass
class ActivityVariance:
    """Result of a planned vs actual comparison for one activity."""
    activity_id: str
    activity_code: str
    activity_name: str
    planned_budget: float  # 0 for a cancelled activity
    actual_spending: float
    variance: float
    variance_percent: float
    remaining: float
    status: VarianceStatus
    expense_count: int = 0
    chapter_breakdown: Dict[str, float] = field(default_factory=dict)
    original_planned_budget: float = 0.0  # as stored, before cancellation

    @property
    def is_over_budget(self) -> bool:
        return self.status == VarianceStatus.OVER_BUDGET

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity_id": self.activity_id,
            "activity_code": self.activity_code,
            "activity_name": self.activity_name,
            "planned_budget": self.planned_budget,
            "actual_spending": self.actual_spending,
            "variance": self.variance,
            "variance_percent": self.variance_percent,
            "remaining": self.remaining,
            "status": self.status.value,
            "expense_count": self.expense_count,
            "chapter_breakdown": dict(self.chapter_breakdown),
            "original_planned_budget": self.original_planned_budget,
        }


@dataclass
class SpendDistributionRow:
    """Spend of one activity inside one budget chapter."""
    activity_id: str
    chapter_id: str
    chapter_code: str
    spent: float
    share_of_chapter_limit: float
    planned_share_of_chapter_limit: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity_id": self.activity_id,
            "chapter_id": self.chapter_id,
            "chapter_code": self.chapter_code,
            "spent": self.spent,
            "share_of_chapter_limit": self.share_of_chapter_limit,
            "planned_share_of_chapter_limit": self.planned_share_of_chapter_limit,
        }


class ActivityVarianceCalculator:
    """Planned vs actual spend per activity for one snapshot."""

    def __init__(
        self,
        snapshot: PlanSnapshot,
        default_match: ExpenseMatch = ExpenseMatch.EITHER,
        issues: IssueLog = None,
    ):
        self.default_match = ExpenseMatch.parse(default_match)
        self.issues = issues if issues is not None else IssueLog()

        self.activities: Dict[str, Activity] = {a.id: a for a in snapshot.activities}
        self.chapters: Dict[str, BudgetChapter] = {c.id: c for c in snapshot.budget_chapters}

        self._by_activity_id: Dict[str, List[Expense]] = defaultdict(list)
        self._by_activity_code: Dict[str, List[Expense]] = defaultdict(list)
        for expense in snapshot.expenses:
            if not expense.counts_toward_spend:
                continue
            if expense.activity_id:
                self._by_activity_id[expense.activity_id].append(expense)
            if expense.activity_code:
                self._by_activity_code[expense.activity_code].append(expense)

    def linked_expenses(self, activity: Activity, match_by: ExpenseMatch = None) -> List[Expense]:
        """Non-Rejected expenses linked to the activity under the given match mode."""
        match_by = ExpenseMatch.parse(match_by or self.default_match)

        linked: List[Expense] = []
        if match_by in (ExpenseMatch.ID, ExpenseMatch.EITHER):
            linked.extend(self._by_activity_id.get(activity.id, []))
        if match_by in (ExpenseMatch.CODE, ExpenseMatch.EITHER) and activity.code:
            # Expense IDs are not unique in the store; an expense linked both
            # ways is the same row object
            seen = {id(e) for e in linked}
            linked.extend(
                e for e in self._by_activity_code.get(activity.code, []) if id(e) not in seen
            )
        return linked

    def actual_spending(self, activity_id: str, match_by: ExpenseMatch = None) -> float:
        activity = self.activities.get(activity_id)
        if activity is None:
            return 0.0
        return sum(number_or_zero(e.amount) for e in self.linked_expenses(activity, match_by))

    def variance(self, activity_id: str, match_by: ExpenseMatch = None) -> ActivityVariance:
        """
        Planned vs actual comparison for one activity.

        Returns:
            ActivityVariance; an unknown activity yields a zero WITHIN_BUDGET result
        """
        activity = self.activities.get(activity_id)
        if activity is None:
            self.issues.record(
                IssueCategory.UNKNOWN_ENTITY,
                f"variance requested for unknown activity {activity_id!r}",
                entity_type="activity",
                entity_id=activity_id,
            )
            return ActivityVariance(
                activity_id=activity_id,
                activity_code="",
                activity_name="",
                planned_budget=0.0,
                actual_spending=0.0,
                variance=0.0,
                variance_percent=0.0,
                remaining=0.0,
                status=VarianceStatus.WITHIN_BUDGET,
            )

        expenses = self.linked_expenses(activity, match_by)
        planned = activity.effective_planned_budget
        actual = sum(number_or_zero(e.amount) for e in expenses)
        variance = actual - planned

        breakdown: Dict[str, float] = defaultdict(float)
        for expense in expenses:
            chapter = self.chapters.get(expense.budget_chapter_id)
            if chapter is not None:
                breakdown[chapter.code or chapter.id] += number_or_zero(expense.amount)

        return ActivityVariance(
            activity_id=activity.id,
            activity_code=activity.code or "",
            activity_name=activity.name,
            planned_budget=planned,
            actual_spending=actual,
            variance=variance,
            variance_percent=safe_percentage(variance, planned),
            remaining=planned - actual,
            status=VarianceStatus.OVER_BUDGET if variance > 0 else VarianceStatus.WITHIN_BUDGET,
            expense_count=len(expenses),
            chapter_breakdown=dict(breakdown),
            original_planned_budget=number_or_zero(activity.planned_budget),
        )

    def all_variances(self, match_by: ExpenseMatch = None) -> List[ActivityVariance]:
        return [self.variance(activity_id, match_by) for activity_id in self.activities]

    def over_budget_activities(self, match_by: ExpenseMatch = None) -> List[ActivityVariance]:
        """Activities whose spend exceeds plan, largest overrun first."""
        over = [v for v in self.all_variances(match_by) if v.is_over_budget]
        return sorted(over, key=lambda v: v.variance, reverse=True)

    def actual_by_activity(self, match_by: ExpenseMatch = None) -> Dict[str, float]:
        return {a_id: self.actual_spending(a_id, match_by) for a_id in self.activities}

    def spend_distribution(self, match_by: ExpenseMatch = None) -> List[SpendDistributionRow]:
        """
        One row per (activity, chapter) pair with spend.

        Shares are relative to the chapter's yearly total limit and are 0
        when the chapter has no limit.
        """
        rows = []
        for activity in self.activities.values():
            spent_by_chapter: Dict[str, float] = defaultdict(float)
            for expense in self.linked_expenses(activity, match_by):
                if expense.budget_chapter_id in self.chapters:
                    spent_by_chapter[expense.budget_chapter_id] += number_or_zero(expense.amount)

            for chapter_id, spent in spent_by_chapter.items():
                chapter = self.chapters[chapter_id]
                limit = to_number(chapter.yearly_total_limit)
                rows.append(SpendDistributionRow(
                    activity_id=activity.id,
                    chapter_id=chapter_id,
                    chapter_code=chapter.code,
                    spent=spent,
                    share_of_chapter_limit=safe_percentage(spent, limit),
                    planned_share_of_chapter_limit=safe_percentage(
                        activity.effective_planned_budget, limit
                    ),
                ))
        return rows


def format_variance_message(variances: List[ActivityVariance]) -> str:
    """Format a user-friendly activity variance report."""
    total_planned = sum(v.planned_budget for v in variances)
    total_actual = sum(v.actual_spending for v in variances)
    total_variance = total_actual - total_planned
    over = [v for v in variances if v.is_over_budget]

    lines = [
        "Activity Budget Variance",
        "=" * 50,
        "",
        f"Total Planned:  {total_planned:,.2f}",
        f"Total Actual:   {total_actual:,.2f}",
        f"Total Variance: {total_variance:,.2f} ({safe_percentage(total_variance, total_planned):+.1f}%)",
        f"Over budget:    {len(over)} of {len(variances)} activities",
        "",
    ]

    for v in sorted(over, key=lambda v: v.variance, reverse=True):
        label = v.activity_code or v.activity_id
        lines.append(f"  {label} {v.activity_name}: +{v.variance:,.2f} ({v.variance_percent:+.1f}%)")

    return "\n".join(lines)
