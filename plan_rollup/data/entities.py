"""
Plan Snapshot Entities

Canonical, immutable records for one computation pass:
- Hierarchy: StrategicArea > Objective > Target > Indicator / Activity
- Budget: BudgetChapter, Expense
- Progress streams: IndicatorProgressEntry, ActivityRealizationRecord

Field-name fallbacks are resolved by the snapshot loader before these
objects are built; nothing downstream looks at alternate spellings.
"""
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Optional, Tuple, Dict, Any

from plan_rollup.core.numeric import number_or_zero


class EntityStatus(Enum):
    """Lifecycle status carried by hierarchy entities."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class ExpenseStatus(Enum):
    """Approval state of an expense."""
    APPROVED = "Approved"
    PENDING = "Pending"
    REJECTED = "Rejected"


class HierarchyLevel(Enum):
    """The five containment levels, top to bottom."""
    AREA = "area"
    OBJECTIVE = "objective"
    TARGET = "target"
    INDICATOR = "indicator"
    ACTIVITY = "activity"


CANCELLED_STATUSES = {"cancelled", "canceled", "iptal edildi", "iptal"}

REJECTED_STATUSES = {"rejected", "reddedildi", "red"}
APPROVED_STATUSES = {"approved", "onaylandı", "onaylandi", "onaylı", "onayli"}


def _fold(value: Any) -> str:
    # Turkish dotted capital I lowercases to "i" plus a combining dot
    return str(value).strip().replace("İ", "i").lower()


def normalize_entity_status(value: Any) -> EntityStatus:
    if isinstance(value, EntityStatus):
        return value
    if value is not None and _fold(value) in CANCELLED_STATUSES:
        return EntityStatus.CANCELLED
    return EntityStatus.ACTIVE


def normalize_expense_status(value: Any) -> ExpenseStatus:
    """Map a raw expense status to Approved / Pending / Rejected. Unknown maps to Pending."""
    if isinstance(value, ExpenseStatus):
        return value
    text = _fold(value or "")
    if text in REJECTED_STATUSES:
        return ExpenseStatus.REJECTED
    if text in APPROVED_STATUSES:
        return ExpenseStatus.APPROVED
    return ExpenseStatus.PENDING


class _StatusNormalized:
    """Accepts raw status strings on hand-built entities."""

    def __post_init__(self):
        object.__setattr__(self, "status", normalize_entity_status(self.status))


@dataclass(frozen=True)
class StrategicArea(_StatusNormalized):
    id: str
    code: str = ""
    name: str = ""
    status: EntityStatus = EntityStatus.ACTIVE


@dataclass(frozen=True)
class Objective(_StatusNormalized):
    id: str
    area_id: Optional[str]
    code: str = ""
    name: str = ""
    status: EntityStatus = EntityStatus.ACTIVE


@dataclass(frozen=True)
class Target(_StatusNormalized):
    id: str
    objective_id: Optional[str]
    code: str = ""
    name: str = ""
    completion_percentage: Optional[float] = None  # Stored literal, not used by roll-ups
    status: EntityStatus = EntityStatus.ACTIVE


@dataclass(frozen=True)
class Indicator(_StatusNormalized):
    id: str
    target_id: Optional[str]
    target_value: Optional[float] = None
    code: str = ""
    name: str = ""
    status: EntityStatus = EntityStatus.ACTIVE


@dataclass(frozen=True)
class Activity(_StatusNormalized):
    id: str
    target_id: Optional[str]
    indicator_id: Optional[str] = None
    budget_chapter_id: Optional[str] = None
    planned_budget: Optional[float] = None
    code: Optional[str] = None  # Denormalized key some expenses link by
    name: str = ""
    status: EntityStatus = EntityStatus.ACTIVE

    @property
    def effective_planned_budget(self) -> float:
        """Planned budget used in budget figures; a cancelled activity plans nothing."""
        if self.status == EntityStatus.CANCELLED:
            return 0.0
        return number_or_zero(self.planned_budget)


@dataclass(frozen=True)
class BudgetChapter:
    id: str
    code: str = ""
    name: str = ""
    yearly_total_limit: Optional[float] = None
    yearly_allocation_limit: Optional[float] = None


@dataclass(frozen=True)
class Expense:
    id: str
    amount: Optional[float]
    activity_id: Optional[str] = None
    budget_chapter_id: Optional[str] = None
    status: ExpenseStatus = ExpenseStatus.PENDING
    activity_code: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", normalize_expense_status(self.status))

    @property
    def counts_toward_spend(self) -> bool:
        return self.status != ExpenseStatus.REJECTED


@dataclass(frozen=True)
class IndicatorProgressEntry:
    indicator_id: str
    value: Optional[float]
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ActivityRealizationRecord:
    activity_id: str
    completion_percentage: Optional[float]
    record_date: Optional[date] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class PlanSnapshot:
    """
    Everything one computation pass reads.

    Collections are tuples so a snapshot cannot be mutated while a
    calculation runs over it.
    """
    areas: Tuple[StrategicArea, ...] = ()
    objectives: Tuple[Objective, ...] = ()
    targets: Tuple[Target, ...] = ()
    indicators: Tuple[Indicator, ...] = ()
    activities: Tuple[Activity, ...] = ()
    budget_chapters: Tuple[BudgetChapter, ...] = ()
    expenses: Tuple[Expense, ...] = ()
    progress_entries: Tuple[IndicatorProgressEntry, ...] = ()
    realization_records: Tuple[ActivityRealizationRecord, ...] = ()
    company_id: Optional[str] = None

    COLLECTIONS = (
        "areas",
        "objectives",
        "targets",
        "indicators",
        "activities",
        "budget_chapters",
        "expenses",
        "progress_entries",
        "realization_records",
    )

    def summary(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"company_id": self.company_id}
        for name in self.COLLECTIONS:
            result[name] = len(getattr(self, name))
        return result
