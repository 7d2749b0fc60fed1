"""
Indicator Achievement Calculations

Reduces the append-only stream of indicator progress entries into an
achieved value and a completion percentage per indicator.

Rules:
- Entries are SUMMED. Each entry is an increment, not a reading, so neither
  the latest entry nor the mean is used.
- Missing or non-numeric entry values contribute 0.
- An indicator with no entries is inactive and completes at 0.
- Completion is capped at the configured cap (100). Use ``achieved`` or
  ``over_performance`` when over-performance must be visible.
"""
import logging
from collections import defaultdict
from typing import Dict, Optional

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.core.numeric import number_or_zero, safe_divide, to_number
from plan_rollup.data.entities import EntityStatus, HierarchyLevel, PlanSnapshot
from plan_rollup.data.hierarchy_index import HierarchyIndex

logger = logging.getLogger(__name__)


class IndicatorAchievementCalculator:
    """Achieved value and capped completion per indicator for one snapshot."""

    def __init__(
        self,
        snapshot: PlanSnapshot,
        index: HierarchyIndex,
        completion_cap: float = 100.0,
        issues: IssueLog = None,
    ):
        self.index = index
        self.completion_cap = completion_cap
        self.issues = issues if issues is not None else index.issues

        self._achieved: Dict[str, float] = defaultdict(float)
        self._entry_counts: Dict[str, int] = defaultdict(int)

        for entry in snapshot.progress_entries:
            if index.get(HierarchyLevel.INDICATOR, entry.indicator_id) is None:
                self.issues.record(
                    IssueCategory.UNKNOWN_ENTITY,
                    f"progress entry references unknown indicator {entry.indicator_id!r}",
                    entity_type=HierarchyLevel.INDICATOR.value,
                    entity_id=entry.indicator_id,
                )
            self._achieved[entry.indicator_id] += number_or_zero(entry.value)
            self._entry_counts[entry.indicator_id] += 1

    def achieved(self, indicator_id: str) -> float:
        """Sum of all progress entry values for the indicator (0 if none)."""
        return self._achieved.get(indicator_id, 0.0)

    def entry_count(self, indicator_id: str) -> int:
        return self._entry_counts.get(indicator_id, 0)

    def is_active(self, indicator_id: str) -> bool:
        """An indicator is active once it has at least one progress entry."""
        return self.entry_count(indicator_id) > 0

    def _target_value(self, indicator_id: str) -> Optional[float]:
        indicator = self.index.get(HierarchyLevel.INDICATOR, indicator_id)
        if indicator is None or indicator.status == EntityStatus.CANCELLED:
            return None
        target_value = to_number(indicator.target_value)
        if not target_value:
            self.issues.record(
                IssueCategory.DIVISION_GUARD,
                f"indicator {indicator_id!r} has no target value; completion is 0",
                entity_type=HierarchyLevel.INDICATOR.value,
                entity_id=indicator_id,
            )
            return None
        return target_value

    def over_performance(self, indicator_id: str) -> float:
        """Uncapped achieved / target * 100 (0 when the target value is missing)."""
        target_value = self._target_value(indicator_id)
        if target_value is None:
            return 0.0
        ratio = safe_divide(self.achieved(indicator_id), target_value)
        return 0.0 if ratio is None else ratio * 100

    def completion(self, indicator_id: str) -> float:
        """
        Completion percentage of an indicator.

        Returns:
            0 for unknown, cancelled or inactive indicators and for a zero or
            missing target value; otherwise min(achieved / target * 100, cap).
        """
        if not self.is_active(indicator_id):
            return 0.0
        target_value = self._target_value(indicator_id)
        if target_value is None:
            return 0.0
        return min(self.achieved(indicator_id) / target_value * 100, self.completion_cap)
