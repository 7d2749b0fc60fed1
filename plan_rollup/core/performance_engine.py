"""
Plan Performance Engine

One object per snapshot that wires the hierarchy index and every
calculator together and exposes their operations under stable names:

- progress_*     completion driven by indicator progress entries
- realization_*  completion driven by activity realization records
- chapter_* / activity_*  budget utilization and variance

The two completion paths are independent and are never merged; callers
choose which one to show. Nothing is cached across snapshots: build a new
engine when the snapshot changes.
"""
import logging
from typing import List, Optional

from config.settings import AppConfig, get_config
from plan_rollup.core.error_taxonomy import EngineContractError, IssueLog
from plan_rollup.core.numeric import mean, number_or_zero
from plan_rollup.data.entities import HierarchyLevel, PlanSnapshot
from plan_rollup.data.hierarchy_index import HierarchyIndex
from plan_rollup.tools.activity_variance import (
    ActivityVariance,
    ActivityVarianceCalculator,
    ExpenseMatch,
    SpendDistributionRow,
)
from plan_rollup.tools.budget_utilization import (
    BudgetUtilizationClassifier,
    ChapterPlan,
    ChapterUtilization,
)
from plan_rollup.tools.indicator_calculator import IndicatorAchievementCalculator
from plan_rollup.tools.realization_aggregator import AlternateRealizationAggregator
from plan_rollup.tools.rollup_aggregator import ProgressBand, RollUpAggregator, RollUpNode

logger = logging.getLogger(__name__)


def _check_snapshot(snapshot: PlanSnapshot):
    if snapshot is None:
        raise EngineContractError("A plan snapshot is required")
    missing = [name for name in PlanSnapshot.COLLECTIONS if getattr(snapshot, name, None) is None]
    if missing:
        raise EngineContractError(
            f"Snapshot is missing required collections: {', '.join(missing)}",
            context={"missing": missing},
        )


class PlanPerformanceEngine:
    """
    Derived completion and budget figures for one immutable snapshot.

    Example:
        engine = PlanPerformanceEngine(snapshot)
        engine.progress_target_completion("t-1")
        engine.chapter_utilization("ch-1").status
    """

    def __init__(self, snapshot: PlanSnapshot, config: Optional[AppConfig] = None):
        _check_snapshot(snapshot)
        self.snapshot = snapshot
        self.config = config or get_config()
        self.issues = IssueLog()

        self.index = HierarchyIndex.build(snapshot, issues=self.issues)
        self.indicators = IndicatorAchievementCalculator(
            snapshot,
            self.index,
            completion_cap=self.config.completion.completion_cap,
            issues=self.issues,
        )
        self.realization = AlternateRealizationAggregator(snapshot, self.index, issues=self.issues)
        # Progress path: indicators from progress entries, direct activities
        # from their realization mean (the only per-activity measurement)
        self.progress = RollUpAggregator(
            self.index,
            indicator_completion=self.indicators.completion,
            activity_completion=self.realization.activity_completion,
        )
        self.budget = BudgetUtilizationClassifier(
            snapshot,
            yellow_threshold=self.config.budget.yellow_threshold,
            red_threshold=self.config.budget.red_threshold,
            issues=self.issues,
        )
        self.variances = ActivityVarianceCalculator(
            snapshot,
            default_match=ExpenseMatch.parse(self.config.budget.expense_match_mode),
            issues=self.issues,
        )

        if len(self.issues):
            logger.warning(f"Snapshot has {len(self.issues)} data issue(s); affected records were skipped")

    # ==================== PROGRESS-ENTRY PATH ====================

    def indicator_achieved(self, indicator_id: str) -> float:
        return self.indicators.achieved(indicator_id)

    def indicator_over_performance(self, indicator_id: str) -> float:
        return self.indicators.over_performance(indicator_id)

    def progress_indicator_completion(self, indicator_id: str) -> float:
        return self.progress.indicator_completion(indicator_id)

    def progress_target_completion(self, target_id: str) -> float:
        return self.progress.target_completion(target_id)

    def progress_objective_completion(self, objective_id: str) -> float:
        return self.progress.objective_completion(objective_id)

    def progress_area_completion(self, area_id: str) -> float:
        return self.progress.area_completion(area_id)

    def progress_plan_completion(self) -> float:
        return self.progress.plan_completion()

    def progress_breakdown(self, area_id: str = None) -> List[RollUpNode]:
        return self.progress.breakdown(area_id)

    # ==================== REALIZATION-RECORD PATH ====================

    def realization_activity_completion(self, activity_id: str) -> float:
        return self.realization.rollup.activity_completion(activity_id)

    def realization_latest_activity_completion(self, activity_id: str) -> float:
        return self.realization.latest_activity_completion(activity_id)

    def realization_indicator_completion(self, indicator_id: str) -> float:
        return self.realization.indicator_completion(indicator_id)

    def realization_target_completion(self, target_id: str) -> float:
        return self.realization.target_completion(target_id)

    def realization_objective_completion(self, objective_id: str) -> float:
        return self.realization.objective_completion(objective_id)

    def realization_area_completion(self, area_id: str) -> float:
        return self.realization.area_completion(area_id)

    def realization_plan_completion(self) -> float:
        return self.realization.plan_completion()

    def realization_breakdown(self, area_id: str = None) -> List[RollUpNode]:
        return self.realization.rollup.breakdown(area_id)

    # ==================== STORED LITERALS ====================

    def stored_area_completion(self, area_id: str) -> float:
        """
        Plain mean of the stored completion literals of an area's targets.

        Unlike the roll-up paths, targets without a literal count as 0.
        """
        targets = [
            t
            for o in self.index.objectives_of(area_id)
            for t in self.index.targets_of(o.id)
        ]
        return mean(number_or_zero(t.completion_percentage) for t in targets)

    @staticmethod
    def progress_band(percentage: float) -> ProgressBand:
        return ProgressBand.for_completion(percentage)

    # ==================== BUDGET ====================

    def chapter_utilization(self, chapter_id: str) -> ChapterUtilization:
        return self.budget.utilization(chapter_id)

    def chapter_utilizations(self) -> List[ChapterUtilization]:
        return self.budget.all_utilizations()

    def critical_chapters(self) -> List[ChapterUtilization]:
        return self.budget.critical_chapters()

    def chapter_plan(self, chapter_id: str, match_by: ExpenseMatch = None) -> ChapterPlan:
        return self.budget.chapter_plan(chapter_id, self.variances.actual_by_activity(match_by))

    def activity_variance(self, activity_id: str, match_by: ExpenseMatch = None) -> ActivityVariance:
        return self.variances.variance(activity_id, match_by)

    def activity_variances(self, match_by: ExpenseMatch = None) -> List[ActivityVariance]:
        return self.variances.all_variances(match_by)

    def over_budget_activities(self, match_by: ExpenseMatch = None) -> List[ActivityVariance]:
        return self.variances.over_budget_activities(match_by)

    def spend_distribution(self, match_by: ExpenseMatch = None) -> List[SpendDistributionRow]:
        return self.variances.spend_distribution(match_by)

    # ==================== LOOKUPS ====================

    def path_to_root(self, level: HierarchyLevel, entity_id: str):
        return self.index.get_path_to_root(level, entity_id)
