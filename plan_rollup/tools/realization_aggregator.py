"""
Realization-Record Roll-Ups

A second completion path that ignores indicator progress entries. Data is
entered only at activity level as immutable realization records; every
level above is derived:

- Activity:  mean of its realization record percentages (0 if none)
- Indicator: average_of_active over the activities attached to it
- Target and above: the shared RollUpAggregator rule

This path is deliberately kept apart from the progress-entry path. The two
are never reconciled or merged.
"""
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.core.numeric import mean, number_or_zero
from plan_rollup.data.entities import ActivityRealizationRecord, HierarchyLevel, PlanSnapshot
from plan_rollup.data.hierarchy_index import HierarchyIndex
from plan_rollup.tools.rollup_aggregator import RollUpAggregator, average_of_active

logger = logging.getLogger(__name__)


def _as_date(value) -> date:
    # datetime is a date subclass but the two do not compare
    if isinstance(value, datetime):
        return value.date()
    return value or date.min


class AlternateRealizationAggregator:
    """Activity-level realization records rolled up through the plan."""

    def __init__(self, snapshot: PlanSnapshot, index: HierarchyIndex, issues: IssueLog = None):
        self.index = index
        self.issues = issues if issues is not None else index.issues

        self._records: Dict[str, List[ActivityRealizationRecord]] = defaultdict(list)
        for record in snapshot.realization_records:
            if index.get(HierarchyLevel.ACTIVITY, record.activity_id) is None:
                self.issues.record(
                    IssueCategory.UNKNOWN_ENTITY,
                    f"realization record references unknown activity {record.activity_id!r}",
                    entity_type=HierarchyLevel.ACTIVITY.value,
                    entity_id=record.activity_id,
                )
            self._records[record.activity_id].append(record)

        self.rollup = RollUpAggregator(
            index,
            indicator_completion=self._indicator_from_activities,
            activity_completion=self.activity_completion,
        )

    def records_for(self, activity_id: str) -> List[ActivityRealizationRecord]:
        """Records for an activity in chronological order; undated records first."""
        return sorted(
            self._records.get(activity_id, []),
            key=lambda r: (r.record_date is not None, _as_date(r.record_date)),
        )

    def activity_completion(self, activity_id: str) -> float:
        """Arithmetic mean of the activity's realization percentages."""
        return mean(number_or_zero(r.completion_percentage) for r in self._records.get(activity_id, []))

    def latest_activity_completion(self, activity_id: str) -> float:
        """Percentage of the most recent record, 0 if there are none."""
        records = self.records_for(activity_id)
        if not records:
            return 0.0
        return number_or_zero(records[-1].completion_percentage)

    def _indicator_from_activities(self, indicator_id: str) -> float:
        return average_of_active(
            self.rollup.activity_completion(a.id)
            for a in self.index.activities_of_indicator(indicator_id)
        )

    def indicator_completion(self, indicator_id: str) -> float:
        return self.rollup.indicator_completion(indicator_id)

    def target_completion(self, target_id: str) -> float:
        return self.rollup.target_completion(target_id)

    def objective_completion(self, objective_id: str) -> float:
        return self.rollup.objective_completion(objective_id)

    def area_completion(self, area_id: str) -> float:
        return self.rollup.area_completion(area_id)

    def plan_completion(self) -> float:
        return self.rollup.plan_completion()
