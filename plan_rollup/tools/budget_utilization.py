"""
Budget Chapter Utilization

Aggregates expenses per budget chapter and classifies consumption.

Key Features:
- Spend per chapter (Rejected expenses never count)
- Utilization percentage against the chapter's yearly total limit
- GREEN / YELLOW / RED status band
- Critical chapter list and planned-allocation view per chapter

The status is a pure function of the percentage, evaluated fresh on every
call: ``> red -> RED``, ``> yellow -> YELLOW``, else GREEN. Boundaries
belong to the lower band (80.0 is GREEN, 100.0 is YELLOW).
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.core.numeric import number_or_zero, safe_percentage, to_number
from plan_rollup.data.entities import BudgetChapter, Expense, PlanSnapshot

logger = logging.getLogger(__name__)

DEFAULT_YELLOW_THRESHOLD = 80.0
DEFAULT_RED_THRESHOLD = 100.0


class BudgetStatus(Enum):
    """Utilization status band."""
    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


def classify_utilization(
    percentage: float,
    yellow_threshold: float = DEFAULT_YELLOW_THRESHOLD,
    red_threshold: float = DEFAULT_RED_THRESHOLD,
) -> BudgetStatus:
    """Classify a utilization percentage; first match wins."""
    if percentage > red_threshold:
        return BudgetStatus.RED
    if percentage > yellow_threshold:
        return BudgetStatus.YELLOW
    return BudgetStatus.GREEN


@dataclass
class ChapterUtilization:
    """Spend against one chapter's yearly total limit."""
    chapter_id: str
    chapter_code: str
    chapter_name: str
    limit: float
    spent: float
    remaining: float
    percentage: float
    status: BudgetStatus
    expense_count: int = 0

    @property
    def is_critical(self) -> bool:
        return self.status in (BudgetStatus.YELLOW, BudgetStatus.RED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapter_id": self.chapter_id,
            "chapter_code": self.chapter_code,
            "chapter_name": self.chapter_name,
            "limit": self.limit,
            "spent": self.spent,
            "remaining": self.remaining,
            "percentage": self.percentage,
            "status": self.status.value,
            "expense_count": self.expense_count,
        }


@dataclass
class ChapterPlan:
    """Planned activity budgets of a chapter compared with their spend."""
    chapter_id: str
    planned_total: float
    actual_total: float
    variance: float  # actual - planned
    variance_percent: float
    allocation_percent: float  # planned total as a share of the yearly total limit
    activity_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapter_id": self.chapter_id,
            "planned_total": self.planned_total,
            "actual_total": self.actual_total,
            "variance": self.variance,
            "variance_percent": self.variance_percent,
            "allocation_percent": self.allocation_percent,
            "activity_count": self.activity_count,
        }


class BudgetUtilizationClassifier:
    """
    Chapter-level spend, utilization and status for one snapshot.

    Expenses are grouped once at construction; every query after that is a
    lookup plus arithmetic.
    """

    def __init__(
        self,
        snapshot: PlanSnapshot,
        yellow_threshold: float = DEFAULT_YELLOW_THRESHOLD,
        red_threshold: float = DEFAULT_RED_THRESHOLD,
        issues: IssueLog = None,
    ):
        self.snapshot = snapshot
        self.yellow_threshold = yellow_threshold
        self.red_threshold = red_threshold
        self.issues = issues if issues is not None else IssueLog()

        self.chapters: Dict[str, BudgetChapter] = {c.id: c for c in snapshot.budget_chapters}
        self._expenses_by_chapter: Dict[str, List[Expense]] = defaultdict(list)

        for expense in snapshot.expenses:
            if not expense.counts_toward_spend:
                continue
            if expense.budget_chapter_id not in self.chapters:
                self.issues.record(
                    IssueCategory.MISSING_REFERENCE,
                    f"expense {expense.id!r} references missing budget chapter "
                    f"{expense.budget_chapter_id!r}",
                    entity_type="expense",
                    entity_id=expense.id,
                )
                continue
            self._expenses_by_chapter[expense.budget_chapter_id].append(expense)

    def spent(self, chapter_id: str) -> float:
        """Sum of non-Rejected expense amounts booked to the chapter."""
        return sum(number_or_zero(e.amount) for e in self._expenses_by_chapter.get(chapter_id, []))

    def utilization(self, chapter_id: str) -> ChapterUtilization:
        """
        Compute spend, remaining budget, utilization and status for a chapter.

        Unknown chapters return a zero GREEN result rather than raising.
        """
        chapter = self.chapters.get(chapter_id)
        if chapter is None:
            self.issues.record(
                IssueCategory.UNKNOWN_ENTITY,
                f"utilization requested for unknown budget chapter {chapter_id!r}",
                entity_type="budget_chapter",
                entity_id=chapter_id,
            )
            return ChapterUtilization(
                chapter_id=chapter_id,
                chapter_code="",
                chapter_name="",
                limit=0.0,
                spent=0.0,
                remaining=0.0,
                percentage=0.0,
                status=BudgetStatus.GREEN,
            )

        limit = number_or_zero(chapter.yearly_total_limit)
        spent = self.spent(chapter_id)
        percentage = safe_percentage(spent, limit)

        return ChapterUtilization(
            chapter_id=chapter.id,
            chapter_code=chapter.code,
            chapter_name=chapter.name,
            limit=limit,
            spent=spent,
            remaining=limit - spent,
            percentage=percentage,
            status=classify_utilization(percentage, self.yellow_threshold, self.red_threshold),
            expense_count=len(self._expenses_by_chapter.get(chapter_id, [])),
        )

    def all_utilizations(self) -> List[ChapterUtilization]:
        return [self.utilization(chapter_id) for chapter_id in self.chapters]

    def critical_chapters(self) -> List[ChapterUtilization]:
        """Chapters in the YELLOW or RED band, most consumed first."""
        critical = [u for u in self.all_utilizations() if u.is_critical]
        return sorted(critical, key=lambda u: u.percentage, reverse=True)

    def chapter_plan(self, chapter_id: str, actual_by_activity: Dict[str, float]) -> ChapterPlan:
        """
        Compare the planned budgets of a chapter's activities with their spend.

        Args:
            chapter_id: Chapter to summarise
            actual_by_activity: Actual spend per activity ID, as computed by
                the activity variance calculator

        Returns:
            ChapterPlan with planned and actual totals and allocation share
        """
        activities = [a for a in self.snapshot.activities if a.budget_chapter_id == chapter_id]
        planned_total = sum(a.effective_planned_budget for a in activities)
        actual_total = sum(actual_by_activity.get(a.id, 0.0) for a in activities)
        variance = actual_total - planned_total

        chapter = self.chapters.get(chapter_id)
        limit: Optional[float] = to_number(chapter.yearly_total_limit) if chapter else None

        return ChapterPlan(
            chapter_id=chapter_id,
            planned_total=planned_total,
            actual_total=actual_total,
            variance=variance,
            variance_percent=safe_percentage(variance, planned_total),
            allocation_percent=safe_percentage(planned_total, limit),
            activity_count=len(activities),
        )


def format_budget_message(utilizations: List[ChapterUtilization]) -> str:
    """Format a user-friendly chapter utilization summary."""
    total_limit = sum(u.limit for u in utilizations)
    total_spent = sum(u.spent for u in utilizations)

    lines = [
        "Budget Chapter Utilization",
        "=" * 50,
        "",
        f"Total Limit: {total_limit:,.2f}",
        f"Total Spent: {total_spent:,.2f}",
        f"Remaining:   {total_limit - total_spent:,.2f}",
        "",
    ]

    for u in utilizations:
        label = f"{u.chapter_code} {u.chapter_name}".strip() or u.chapter_id
        lines.append(
            f"[{u.status.value.upper():6}] {label}: {u.spent:,.2f} / {u.limit:,.2f} "
            f"({u.percentage:.1f}%)"
        )

    return "\n".join(lines)
