"""
Tabular views of engine outputs for presentation and export collaborators.

Every number in these frames comes from the engine; the frames only
reshape. Consumers must not recompute completion or variance from the
raw columns.
"""
import logging
from typing import List

import pandas as pd

from plan_rollup.data.entities import HierarchyLevel
from plan_rollup.tools.rollup_aggregator import RollUpNode

logger = logging.getLogger(__name__)

HIERARCHY_COLUMNS = [
    "level", "entity_id", "code", "name", "parent_id",
    "completion", "band", "child_count", "active_child_count",
]


def hierarchy_frame(nodes: List[RollUpNode]) -> pd.DataFrame:
    """
    Flatten roll-up trees into one row per node (depth-first order).

    Args:
        nodes: Area nodes as returned by ``progress_breakdown`` or
               ``realization_breakdown``
    """
    rows = []

    def visit(node: RollUpNode, parent_id):
        row = node.to_dict(include_children=False)
        rows.append({
            "level": row["level"],
            "entity_id": row["entity_id"],
            "code": row["code"],
            "name": row["name"],
            "parent_id": parent_id,
            "completion": row["completion"],
            "band": row["band"],
            "child_count": row["child_count"],
            "active_child_count": row["active_child_count"],
        })
        for child in node.children:
            visit(child, node.entity_id)

    for node in nodes:
        visit(node, None)

    return pd.DataFrame(rows, columns=HIERARCHY_COLUMNS)


def chapter_frame(engine) -> pd.DataFrame:
    """One row per budget chapter with spend, utilization and status."""
    rows = [u.to_dict() for u in engine.chapter_utilizations()]
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    return df.sort_values("percentage", ascending=False).reset_index(drop=True)


def variance_frame(engine, match_by=None) -> pd.DataFrame:
    """One row per activity with planned, actual and variance figures."""
    rows = []
    for v in engine.activity_variances(match_by):
        row = v.to_dict()
        row.pop("chapter_breakdown")
        rows.append(row)
    return pd.DataFrame(rows)


def spend_distribution_frame(engine, match_by=None) -> pd.DataFrame:
    """Activity x chapter spend as a long-format frame."""
    return pd.DataFrame([r.to_dict() for r in engine.spend_distribution(match_by)])


def completion_comparison_frame(engine) -> pd.DataFrame:
    """
    Both completion paths side by side for every area.

    Shown next to each other, never combined.
    """
    rows = []
    for area in engine.index.all(HierarchyLevel.AREA):
        rows.append({
            "area_id": area.id,
            "code": area.code,
            "name": area.name,
            "progress_completion": engine.progress_area_completion(area.id),
            "realization_completion": engine.realization_area_completion(area.id),
            "stored_completion": engine.stored_area_completion(area.id),
        })
    return pd.DataFrame(rows)
