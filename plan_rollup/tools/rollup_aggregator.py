"""
Plan Hierarchy Roll-Ups

Propagates completion percentages bottom-up through the plan:

    Target    <- indicators + indicator-less activities
    Objective <- targets
    Area      <- objectives
    Plan      <- areas

Key Concepts:
- Active child: a child whose completion is strictly greater than 0
- average_of_active: mean of the active children only; 0 when none are
  active. Untouched children do not pull a parent down, so a parent with a
  single active child reports that child's completion.

The same rule is applied at every level. Leaf completions come from two
callables so the progress-entry path and the realization-record path share
this aggregator without sharing data.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from plan_rollup.core.numeric import mean
from plan_rollup.data.entities import EntityStatus, HierarchyLevel
from plan_rollup.data.hierarchy_index import HierarchyIndex

logger = logging.getLogger(__name__)

CompletionFn = Callable[[str], float]


def average_of_active(completions: Iterable[float]) -> float:
    """Mean of the completions that are strictly greater than 0, or 0 if none are."""
    return mean(c for c in completions if c > 0)


class ProgressBand(Enum):
    """Display band for a completion percentage."""
    NOT_STARTED = "not_started"
    CRITICAL = "critical"
    LOW = "low"
    MODERATE = "moderate"
    ON_TRACK = "on_track"

    @classmethod
    def for_completion(cls, percentage: float) -> "ProgressBand":
        if percentage <= 0:
            return cls.NOT_STARTED
        if percentage <= 25:
            return cls.CRITICAL
        if percentage <= 50:
            return cls.LOW
        if percentage <= 75:
            return cls.MODERATE
        return cls.ON_TRACK


@dataclass
class RollUpNode:
    """
    One node of a computed roll-up tree.

    Children are kept so presentation code can render the tree without
    recomputing anything.
    """
    level: HierarchyLevel
    entity_id: str
    code: str
    name: str
    completion: float
    children: List["RollUpNode"] = field(default_factory=list)

    @property
    def active_children(self) -> int:
        return sum(1 for c in self.children if c.completion > 0)

    @property
    def band(self) -> ProgressBand:
        return ProgressBand.for_completion(self.completion)

    def walk(self) -> Iterable["RollUpNode"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        result = {
            "level": self.level.value,
            "entity_id": self.entity_id,
            "code": self.code,
            "name": self.name,
            "completion": self.completion,
            "band": self.band.value,
            "child_count": len(self.children),
            "active_child_count": self.active_children,
        }
        if include_children and self.children:
            result["children"] = [c.to_dict(include_children) for c in self.children]
        return result


class RollUpAggregator:
    """
    Average-of-active roll-up over a hierarchy index.

    Args:
        index: Hierarchy of the snapshot being aggregated
        indicator_completion: Completion of an indicator by ID
        activity_completion: Completion of an indicator-less activity by ID
    """

    def __init__(
        self,
        index: HierarchyIndex,
        indicator_completion: CompletionFn,
        activity_completion: CompletionFn,
    ):
        self.index = index
        self._indicator_completion = indicator_completion
        self._activity_completion = activity_completion

    def _cancelled(self, level: HierarchyLevel, entity_id: str) -> bool:
        entity = self.index.get(level, entity_id)
        return entity is None or entity.status == EntityStatus.CANCELLED

    def indicator_completion(self, indicator_id: str) -> float:
        if self._cancelled(HierarchyLevel.INDICATOR, indicator_id):
            return 0.0
        return self._indicator_completion(indicator_id)

    def activity_completion(self, activity_id: str) -> float:
        if self._cancelled(HierarchyLevel.ACTIVITY, activity_id):
            return 0.0
        return self._activity_completion(activity_id)

    def target_completion(self, target_id: str) -> float:
        """Average of active indicators and indicator-less activities."""
        if self._cancelled(HierarchyLevel.TARGET, target_id):
            return 0.0
        completions = [self.indicator_completion(i.id) for i in self.index.indicators_of(target_id)]
        completions += [self.activity_completion(a.id) for a in self.index.direct_activities_of(target_id)]
        return average_of_active(completions)

    def objective_completion(self, objective_id: str) -> float:
        if self._cancelled(HierarchyLevel.OBJECTIVE, objective_id):
            return 0.0
        return average_of_active(
            self.target_completion(t.id) for t in self.index.targets_of(objective_id)
        )

    def area_completion(self, area_id: str) -> float:
        if self._cancelled(HierarchyLevel.AREA, area_id):
            return 0.0
        return average_of_active(
            self.objective_completion(o.id) for o in self.index.objectives_of(area_id)
        )

    def plan_completion(self) -> float:
        return average_of_active(
            self.area_completion(a.id) for a in self.index.all(HierarchyLevel.AREA)
        )

    def completion(self, level: HierarchyLevel, entity_id: str) -> float:
        """Completion of any node by level."""
        dispatch = {
            HierarchyLevel.AREA: self.area_completion,
            HierarchyLevel.OBJECTIVE: self.objective_completion,
            HierarchyLevel.TARGET: self.target_completion,
            HierarchyLevel.INDICATOR: self.indicator_completion,
            HierarchyLevel.ACTIVITY: self.activity_completion,
        }
        return dispatch[level](entity_id)

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def breakdown(self, area_id: Optional[str] = None) -> List[RollUpNode]:
        """
        Build the computed tree for every area, or for one area.

        Each node's completion is computed bottom-up from its built
        children, so a node is evaluated once per call.
        """
        areas = self.index.all(HierarchyLevel.AREA)
        if area_id is not None:
            areas = [a for a in areas if a.id == area_id]
        return [self._area_node(a) for a in areas]

    def _node(self, level: HierarchyLevel, entity, completion: float, children=None) -> RollUpNode:
        return RollUpNode(
            level=level,
            entity_id=entity.id,
            code=getattr(entity, "code", "") or "",
            name=getattr(entity, "name", "") or "",
            completion=completion,
            children=children or [],
        )

    def _combine(self, level: HierarchyLevel, entity, children: List[RollUpNode]) -> RollUpNode:
        if entity.status == EntityStatus.CANCELLED:
            completion = 0.0
        else:
            completion = average_of_active(c.completion for c in children)
        return self._node(level, entity, completion, children)

    def _area_node(self, area) -> RollUpNode:
        children = [self._objective_node(o) for o in self.index.objectives_of(area.id)]
        return self._combine(HierarchyLevel.AREA, area, children)

    def _objective_node(self, objective) -> RollUpNode:
        children = [self._target_node(t) for t in self.index.targets_of(objective.id)]
        return self._combine(HierarchyLevel.OBJECTIVE, objective, children)

    def _target_node(self, target) -> RollUpNode:
        children = []
        for indicator in self.index.indicators_of(target.id):
            activity_nodes = [
                self._node(HierarchyLevel.ACTIVITY, a, self.activity_completion(a.id))
                for a in self.index.activities_of_indicator(indicator.id)
            ]
            children.append(self._node(
                HierarchyLevel.INDICATOR,
                indicator,
                self.indicator_completion(indicator.id),
                activity_nodes,
            ))
        for activity in self.index.direct_activities_of(target.id):
            children.append(self._node(
                HierarchyLevel.ACTIVITY, activity, self.activity_completion(activity.id)
            ))
        return self._combine(HierarchyLevel.TARGET, target, children)


def format_rollup_report(nodes: List[RollUpNode], title: str = "Plan Completion", indent_size: int = 2) -> str:
    """Format a roll-up tree as a text report with indentation."""
    lines = [title, "=" * 50, ""]

    for node in nodes:
        _format_node(node, lines, 0, indent_size)

    return "\n".join(lines)


def _format_node(node: RollUpNode, lines: List[str], depth: int, indent_size: int):
    """Recursively format a node and its children."""
    indent = " " * (depth * indent_size)
    label = f"{node.code} {node.name}".strip() or node.entity_id
    lines.append(f"{indent}{label}: {node.completion:.1f}% [{node.band.value}]")

    for child in node.children:
        _format_node(child, lines, depth + 1, indent_size)
