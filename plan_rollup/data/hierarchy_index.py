"""
Plan Hierarchy Index

Provides parent/child lookups over the five plan levels for roll-up reporting.
Supports:
- Lookup of any entity by level and ID
- Direct children of any node (objectives of an area, targets of an
  objective, indicators and indicator-less activities of a target, ...)
- Parent and path-to-root queries for breadcrumbs

Key Concepts:
- Direct activity: an activity attached to a target without an indicator
- Orphan: an entity whose parent ID is not in the snapshot. Orphans are
  logged, recorded as MISSING_REFERENCE issues and left out of every
  children list. They never raise.

The index is rebuilt for every snapshot; nothing is cached between snapshots.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from collections import defaultdict

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.data.entities import (
    Activity,
    HierarchyLevel,
    Indicator,
    Objective,
    PlanSnapshot,
    StrategicArea,
    Target,
)

logger = logging.getLogger(__name__)

_PARENT_LEVEL = {
    HierarchyLevel.OBJECTIVE: HierarchyLevel.AREA,
    HierarchyLevel.TARGET: HierarchyLevel.OBJECTIVE,
    HierarchyLevel.INDICATOR: HierarchyLevel.TARGET,
    HierarchyLevel.ACTIVITY: HierarchyLevel.TARGET,
}


@dataclass
class HierarchyIndex:
    """
    Lookup structures over one plan snapshot.

    All queries are dict lookups. Children lists only hold entities whose
    parent resolved.
    """
    by_id: Dict[HierarchyLevel, Dict[str, Any]] = field(default_factory=dict)

    objectives_by_area: Dict[str, List[Objective]] = field(default_factory=dict)
    targets_by_objective: Dict[str, List[Target]] = field(default_factory=dict)
    indicators_by_target: Dict[str, List[Indicator]] = field(default_factory=dict)
    activities_by_indicator: Dict[str, List[Activity]] = field(default_factory=dict)
    direct_activities_by_target: Dict[str, List[Activity]] = field(default_factory=dict)

    issues: IssueLog = field(default_factory=IssueLog)

    @classmethod
    def build(cls, snapshot: PlanSnapshot, issues: IssueLog = None) -> "HierarchyIndex":
        """Build a fresh index for ``snapshot``."""
        index = cls(issues=issues if issues is not None else IssueLog())
        index._index_entities(snapshot)
        index._link_children(snapshot)

        logger.debug(
            f"Built hierarchy index: {len(snapshot.areas)} areas, "
            f"{len(snapshot.objectives)} objectives, {len(snapshot.targets)} targets, "
            f"{len(snapshot.indicators)} indicators, {len(snapshot.activities)} activities"
        )
        return index

    def _index_entities(self, snapshot: PlanSnapshot):
        collections = {
            HierarchyLevel.AREA: snapshot.areas,
            HierarchyLevel.OBJECTIVE: snapshot.objectives,
            HierarchyLevel.TARGET: snapshot.targets,
            HierarchyLevel.INDICATOR: snapshot.indicators,
            HierarchyLevel.ACTIVITY: snapshot.activities,
        }
        for level, entities in collections.items():
            lookup = {}
            for entity in entities:
                if entity.id in lookup:
                    logger.warning(f"Duplicate {level.value} id {entity.id!r}; keeping the first")
                    continue
                lookup[entity.id] = entity
            self.by_id[level] = lookup

    def _link_children(self, snapshot: PlanSnapshot):
        objectives = defaultdict(list)
        targets = defaultdict(list)
        indicators = defaultdict(list)
        by_indicator = defaultdict(list)
        direct = defaultdict(list)

        for objective in self.by_id[HierarchyLevel.OBJECTIVE].values():
            if self._resolves(HierarchyLevel.OBJECTIVE, objective.id, objective.area_id):
                objectives[objective.area_id].append(objective)

        for target in self.by_id[HierarchyLevel.TARGET].values():
            if self._resolves(HierarchyLevel.TARGET, target.id, target.objective_id):
                targets[target.objective_id].append(target)

        for indicator in self.by_id[HierarchyLevel.INDICATOR].values():
            if self._resolves(HierarchyLevel.INDICATOR, indicator.id, indicator.target_id):
                indicators[indicator.target_id].append(indicator)

        for activity in self.by_id[HierarchyLevel.ACTIVITY].values():
            if activity.indicator_id:
                # Attached through an indicator; never a direct target child
                if activity.indicator_id in self.by_id[HierarchyLevel.INDICATOR]:
                    by_indicator[activity.indicator_id].append(activity)
                else:
                    self.issues.record(
                        IssueCategory.MISSING_REFERENCE,
                        f"activity {activity.id!r} references missing indicator "
                        f"{activity.indicator_id!r}",
                        entity_type=HierarchyLevel.ACTIVITY.value,
                        entity_id=activity.id,
                    )
            elif self._resolves(HierarchyLevel.ACTIVITY, activity.id, activity.target_id):
                direct[activity.target_id].append(activity)

        self.objectives_by_area = dict(objectives)
        self.targets_by_objective = dict(targets)
        self.indicators_by_target = dict(indicators)
        self.activities_by_indicator = dict(by_indicator)
        self.direct_activities_by_target = dict(direct)

    def _resolves(self, level: HierarchyLevel, entity_id: str, parent_id: Optional[str]) -> bool:
        parent_level = _PARENT_LEVEL[level]
        if parent_id and parent_id in self.by_id[parent_level]:
            return True
        self.issues.record(
            IssueCategory.MISSING_REFERENCE,
            f"{level.value} {entity_id!r} references missing {parent_level.value} {parent_id!r}",
            entity_type=level.value,
            entity_id=entity_id,
        )
        return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, level: HierarchyLevel, entity_id: str):
        """Get an entity by level and ID, or None."""
        return self.by_id.get(level, {}).get(entity_id)

    def all(self, level: HierarchyLevel) -> List[Any]:
        return list(self.by_id.get(level, {}).values())

    def objectives_of(self, area_id: str) -> List[Objective]:
        return self.objectives_by_area.get(area_id, [])

    def targets_of(self, objective_id: str) -> List[Target]:
        return self.targets_by_objective.get(objective_id, [])

    def indicators_of(self, target_id: str) -> List[Indicator]:
        return self.indicators_by_target.get(target_id, [])

    def activities_of_indicator(self, indicator_id: str) -> List[Activity]:
        return self.activities_by_indicator.get(indicator_id, [])

    def direct_activities_of(self, target_id: str) -> List[Activity]:
        """Activities attached to the target without an indicator."""
        return self.direct_activities_by_target.get(target_id, [])

    def children_of(self, level: HierarchyLevel, entity_id: str) -> List[Any]:
        """Direct roll-up children of a node."""
        if level == HierarchyLevel.AREA:
            return list(self.objectives_of(entity_id))
        if level == HierarchyLevel.OBJECTIVE:
            return list(self.targets_of(entity_id))
        if level == HierarchyLevel.TARGET:
            return list(self.indicators_of(entity_id)) + list(self.direct_activities_of(entity_id))
        if level == HierarchyLevel.INDICATOR:
            return list(self.activities_of_indicator(entity_id))
        return []

    def parent_of(self, level: HierarchyLevel, entity_id: str):
        """Get the parent entity, or None for areas and unresolvable references."""
        entity = self.get(level, entity_id)
        if entity is None:
            return None

        if level == HierarchyLevel.OBJECTIVE:
            return self.get(HierarchyLevel.AREA, entity.area_id)
        if level == HierarchyLevel.TARGET:
            return self.get(HierarchyLevel.OBJECTIVE, entity.objective_id)
        if level == HierarchyLevel.INDICATOR:
            return self.get(HierarchyLevel.TARGET, entity.target_id)
        if level == HierarchyLevel.ACTIVITY:
            if entity.indicator_id:
                return self.get(HierarchyLevel.INDICATOR, entity.indicator_id)
            return self.get(HierarchyLevel.TARGET, entity.target_id)
        return None

    def get_path_to_root(self, level: HierarchyLevel, entity_id: str) -> List[Any]:
        """Get the path from an entity up to its strategic area, root first."""
        entity = self.get(level, entity_id)
        if entity is None:
            return []

        path = [entity]
        current_level, current = level, entity
        while current_level != HierarchyLevel.AREA:
            parent = self.parent_of(current_level, current.id)
            if parent is None:
                break
            current_level = _level_of(parent)
            current = parent
            path.append(current)

        return list(reversed(path))


def _level_of(entity) -> HierarchyLevel:
    if isinstance(entity, StrategicArea):
        return HierarchyLevel.AREA
    if isinstance(entity, Objective):
        return HierarchyLevel.OBJECTIVE
    if isinstance(entity, Target):
        return HierarchyLevel.TARGET
    if isinstance(entity, Indicator):
        return HierarchyLevel.INDICATOR
    return HierarchyLevel.ACTIVITY
