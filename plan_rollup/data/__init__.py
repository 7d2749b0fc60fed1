"""
Data layer module for plan snapshots, ingestion and hierarchy lookups.
"""
from plan_rollup.data.entities import (
    Activity,
    ActivityRealizationRecord,
    BudgetChapter,
    EntityStatus,
    Expense,
    ExpenseStatus,
    HierarchyLevel,
    Indicator,
    IndicatorProgressEntry,
    Objective,
    PlanSnapshot,
    StrategicArea,
    Target,
)
from plan_rollup.data.hierarchy_index import HierarchyIndex
from plan_rollup.data.snapshot_loader import (
    SnapshotLoader,
    build_snapshot,
    load_snapshot_file,
)

__all__ = [
    # Entities
    "Activity",
    "ActivityRealizationRecord",
    "BudgetChapter",
    "EntityStatus",
    "Expense",
    "ExpenseStatus",
    "HierarchyLevel",
    "Indicator",
    "IndicatorProgressEntry",
    "Objective",
    "PlanSnapshot",
    "StrategicArea",
    "Target",
    # Hierarchy
    "HierarchyIndex",
    # Ingestion
    "SnapshotLoader",
    "build_snapshot",
    "load_snapshot_file",
]
