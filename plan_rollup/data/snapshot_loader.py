"""
Snapshot Loader

Turns raw Entity Provider rows into a canonical ``PlanSnapshot``.

This is the only place that knows about alternate field names. Rows that
cannot be validated at all (e.g. no ID) are skipped and recorded as
INVALID_RECORD issues; everything else is normalized once, here.

Supported inputs:
- ``build_snapshot(raw)``: a dict with one list per collection
- ``load_snapshot_file(path)``: the same document stored as YAML or JSON
"""
import json
import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, Union

import yaml
from pydantic import ValidationError

from plan_rollup.core.error_taxonomy import EngineContractError, IssueCategory, IssueLog
from plan_rollup.core.numeric import to_number
from plan_rollup.data.entities import (
    Activity,
    ActivityRealizationRecord,
    BudgetChapter,
    Expense,
    Indicator,
    IndicatorProgressEntry,
    Objective,
    PlanSnapshot,
    StrategicArea,
    Target,
    normalize_entity_status,
    normalize_expense_status,
)
from plan_rollup.data.record_schemas import (
    ActivityRecord,
    AreaRecord,
    BudgetChapterRecord,
    ExpenseRecord,
    IndicatorRecord,
    MonitoringRecord,
    ObjectiveRecord,
    ProgressEntryRecord,
    ProviderRecord,
    RealizationRecord,
    TargetRecord,
)

logger = logging.getLogger(__name__)


# Accepted document keys per collection, canonical name first
COLLECTION_KEYS: Dict[str, Tuple[str, ...]] = {
    "areas": ("areas", "strategicAreas", "strategic_areas"),
    "objectives": ("objectives", "strategicObjectives", "strategic_objectives"),
    "targets": ("targets",),
    "indicators": ("indicators",),
    "activities": ("activities",),
    "budget_chapters": ("budget_chapters", "budgetChapters", "fasiller"),
    "expenses": ("expenses", "harcamalar"),
    "progress_entries": ("progress_entries", "progressEntries"),
    "monitoring_records": ("monitoring_records", "activityMonitoringRecords"),
    "realization_records": (
        "realization_records",
        "realizationRecords",
        "activity_realization_records",
    ),
}


def _as_datetime(value: Optional[Union[date, datetime]]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _as_date(value: Optional[Union[date, datetime]]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


class SnapshotLoader:
    """
    Validates provider rows and builds immutable snapshots.

    One loader may be reused; issues accumulate in ``self.issues`` unless a
    fresh log is passed per call.
    """

    def __init__(self, issues: IssueLog = None):
        self.issues = issues if issues is not None else IssueLog()

    def _validate_rows(
        self,
        rows: List[Dict[str, Any]],
        schema: Type[ProviderRecord],
    ) -> List[ProviderRecord]:
        validated = []
        for position, row in enumerate(rows or []):
            if not isinstance(row, dict):
                self.issues.record(
                    IssueCategory.INVALID_RECORD,
                    f"{schema.__name__} row {position} is not a mapping; skipped",
                    entity_type=schema.__name__,
                )
                continue
            try:
                validated.append(schema.model_validate(row, context={"issues": self.issues}))
            except ValidationError as e:
                self.issues.record(
                    IssueCategory.INVALID_RECORD,
                    f"{schema.__name__} row {position} skipped: {e.error_count()} validation error(s)",
                    entity_type=schema.__name__,
                    errors=[err["msg"] for err in e.errors()],
                )
        return validated

    def build_snapshot(self, raw: Dict[str, Any], company_id: str = None) -> PlanSnapshot:
        """
        Build a snapshot from a dict of raw collections.

        Args:
            raw: Mapping of collection name (any accepted spelling) to a list of rows
            company_id: Optional tenant label carried on the snapshot

        Returns:
            PlanSnapshot with canonical entities
        """
        if raw is None:
            raise EngineContractError("build_snapshot requires a mapping of collections, got None")

        collections = {name: self._collection(raw, name) for name in COLLECTION_KEYS}

        progress_entries = [
            IndicatorProgressEntry(
                indicator_id=r.indicator_id,
                value=r.value,
                timestamp=_as_datetime(r.timestamp),
            )
            for r in self._validate_rows(collections["progress_entries"], ProgressEntryRecord)
        ]
        progress_entries.extend(
            self._flatten_monitoring(collections["monitoring_records"])
        )

        snapshot = PlanSnapshot(
            areas=tuple(
                StrategicArea(
                    id=r.id,
                    code=r.code or "",
                    name=r.name or "",
                    status=normalize_entity_status(r.status),
                )
                for r in self._validate_rows(collections["areas"], AreaRecord)
            ),
            objectives=tuple(
                Objective(
                    id=r.id,
                    area_id=r.area_id,
                    code=r.code or "",
                    name=r.name or "",
                    status=normalize_entity_status(r.status),
                )
                for r in self._validate_rows(collections["objectives"], ObjectiveRecord)
            ),
            targets=tuple(
                Target(
                    id=r.id,
                    objective_id=r.objective_id,
                    code=r.code or "",
                    name=r.name or "",
                    completion_percentage=r.completion_percentage,
                    status=normalize_entity_status(r.status),
                )
                for r in self._validate_rows(collections["targets"], TargetRecord)
            ),
            indicators=tuple(
                Indicator(
                    id=r.id,
                    target_id=r.target_id,
                    target_value=r.target_value,
                    code=r.code or "",
                    name=r.name or "",
                    status=normalize_entity_status(r.status),
                )
                for r in self._validate_rows(collections["indicators"], IndicatorRecord)
            ),
            activities=tuple(
                Activity(
                    id=r.id,
                    target_id=r.target_id,
                    indicator_id=r.indicator_id,
                    budget_chapter_id=r.budget_chapter_id,
                    planned_budget=r.planned_budget,
                    code=r.code,
                    name=r.name or "",
                    status=normalize_entity_status(r.status),
                )
                for r in self._validate_rows(collections["activities"], ActivityRecord)
            ),
            budget_chapters=tuple(
                BudgetChapter(
                    id=r.id,
                    code=r.code or "",
                    name=r.name or "",
                    yearly_total_limit=r.yearly_total_limit,
                    yearly_allocation_limit=r.yearly_allocation_limit,
                )
                for r in self._validate_rows(collections["budget_chapters"], BudgetChapterRecord)
            ),
            expenses=tuple(
                Expense(
                    id=r.id,
                    amount=r.amount,
                    activity_id=r.activity_id,
                    budget_chapter_id=r.budget_chapter_id,
                    status=normalize_expense_status(r.status),
                    activity_code=r.activity_code,
                )
                for r in self._validate_rows(collections["expenses"], ExpenseRecord)
            ),
            progress_entries=tuple(progress_entries),
            realization_records=tuple(
                ActivityRealizationRecord(
                    id=r.id,
                    activity_id=r.activity_id,
                    completion_percentage=r.completion_percentage,
                    record_date=_as_date(r.record_date),
                )
                for r in self._validate_rows(collections["realization_records"], RealizationRecord)
            ),
            company_id=company_id or raw.get("company_id") or raw.get("companyId"),
        )

        logger.info(f"Loaded plan snapshot: {snapshot.summary()}")
        return snapshot

    def _collection(self, raw: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
        for key in COLLECTION_KEYS[name]:
            if key in raw and raw[key] is not None:
                return list(raw[key])
        return []

    def _flatten_monitoring(self, rows: List[Dict[str, Any]]) -> List[IndicatorProgressEntry]:
        """Split legacy monitoring rows into one progress entry per indicator value."""
        entries = []
        for record in self._validate_rows(rows, MonitoringRecord):
            for indicator_id, raw_value in record.indicator_values.items():
                value = to_number(raw_value)
                if value is None and raw_value not in (None, ""):
                    self.issues.record(
                        IssueCategory.INVALID_NUMERIC,
                        f"monitoring value for indicator {indicator_id!r} is not numeric: {raw_value!r}",
                        entity_type="indicator",
                        entity_id=str(indicator_id),
                    )
                entries.append(IndicatorProgressEntry(
                    indicator_id=str(indicator_id),
                    value=value,
                    timestamp=_as_datetime(record.timestamp),
                ))
        return entries


def build_snapshot(raw: Dict[str, Any], company_id: str = None, issues: IssueLog = None) -> PlanSnapshot:
    """Build a snapshot from raw collections with a throwaway loader."""
    return SnapshotLoader(issues).build_snapshot(raw, company_id=company_id)


def load_snapshot_file(path: Union[str, Path], issues: IssueLog = None) -> PlanSnapshot:
    """
    Load a snapshot document from a YAML or JSON file.

    A .json suffix is read with the json module; anything else is YAML.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            document = json.load(f)
        else:
            document = yaml.safe_load(f)

    if not isinstance(document, dict):
        raise EngineContractError(
            f"Snapshot file {path} must contain a mapping of collections",
            context={"path": str(path)},
        )

    logger.info(f"Reading plan snapshot from {path}")
    return build_snapshot(document, issues=issues)
