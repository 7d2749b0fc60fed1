"""
Ingestion Schemas for Entity Provider Records

Provides Pydantic models that validate raw provider rows and resolve the
alternate field spellings the store has accumulated (camelCase, snake_case
and the legacy Turkish column names) into one canonical schema.

Numeric fields never fail validation: a value that is present but not
numeric becomes None and, when an ``IssueLog`` is passed in the validation
context, an INVALID_NUMERIC issue is recorded.
"""
from datetime import date, datetime
from typing import Any, ClassVar, Dict, Optional, Tuple, Union
import logging

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from plan_rollup.core.error_taxonomy import IssueCategory
from plan_rollup.core.numeric import to_number

logger = logging.getLogger(__name__)


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class ProviderRecord(BaseModel):
    """Base for all provider rows: unknown keys are ignored, IDs become strings."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # Fields holding amounts, limits and percentages
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @field_validator("*", mode="before")
    @classmethod
    def coerce_raw_value(cls, value: Any, info: ValidationInfo):
        name = info.field_name
        if name in cls.NUMERIC_FIELDS:
            number = to_number(value)
            if number is None and value not in (None, ""):
                issues = (info.context or {}).get("issues")
                if issues is not None:
                    issues.record(
                        IssueCategory.INVALID_NUMERIC,
                        f"{cls.__name__}.{name} is not numeric: {value!r}; treated as missing",
                        entity_type=cls.__name__,
                        raw_value=repr(value),
                    )
            return number
        if name.endswith("id") or name.endswith("code"):
            if value is None or value == "":
                return None
            return str(value)
        return value


class AreaRecord(ProviderRecord):
    id: str
    code: Optional[str] = ""
    name: Optional[str] = ""
    status: Optional[str] = None


class ObjectiveRecord(ProviderRecord):
    id: str
    area_id: Optional[str] = Field(
        None, validation_alias=_aliases("area_id", "areaId", "strategicAreaId", "strategic_area_id")
    )
    code: Optional[str] = ""
    name: Optional[str] = ""
    status: Optional[str] = None


class TargetRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("completion_percentage",)

    id: str
    objective_id: Optional[str] = Field(None, validation_alias=_aliases("objective_id", "objectiveId"))
    code: Optional[str] = ""
    name: Optional[str] = ""
    completion_percentage: Optional[float] = Field(
        None, validation_alias=_aliases("completion_percentage", "completionPercentage")
    )
    status: Optional[str] = None


class IndicatorRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("target_value",)

    id: str
    target_id: Optional[str] = Field(None, validation_alias=_aliases("target_id", "targetId"))
    target_value: Optional[float] = Field(None, validation_alias=_aliases("target_value", "targetValue"))
    code: Optional[str] = ""
    name: Optional[str] = ""
    status: Optional[str] = None


class ActivityRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("planned_budget",)

    id: str
    target_id: Optional[str] = Field(None, validation_alias=_aliases("target_id", "targetId"))
    indicator_id: Optional[str] = Field(None, validation_alias=_aliases("indicator_id", "indicatorId"))
    budget_chapter_id: Optional[str] = Field(
        None, validation_alias=_aliases("budget_chapter_id", "budgetChapterId", "fasil_id")
    )
    planned_budget: Optional[float] = Field(
        None, validation_alias=_aliases("planned_budget", "plannedBudget", "butce", "budget")
    )
    code: Optional[str] = Field(None, validation_alias=_aliases("code", "faaliyet_kodu"))
    name: Optional[str] = Field("", validation_alias=_aliases("name", "faaliyet_adi"))
    status: Optional[str] = None


class BudgetChapterRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("yearly_total_limit", "yearly_allocation_limit")

    id: str = Field(validation_alias=_aliases("id", "fasil_id"))
    code: Optional[str] = Field("", validation_alias=_aliases("code", "fasil_kodu"))
    name: Optional[str] = Field("", validation_alias=_aliases("name", "fasil_adi"))
    yearly_total_limit: Optional[float] = Field(
        None,
        validation_alias=_aliases(
            "yearly_total_limit", "yearlyTotalLimit", "yillik_toplam_limit", "annualBudget"
        ),
    )
    yearly_allocation_limit: Optional[float] = Field(
        None,
        validation_alias=_aliases(
            "yearly_allocation_limit", "yearlyAllocationLimit", "yillik_tahsis_limit"
        ),
    )


class ExpenseRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("amount",)

    id: str = Field(validation_alias=_aliases("id", "harcama_id"))
    amount: Optional[float] = Field(
        None, validation_alias=_aliases("amount", "totalAmount", "total_amount", "toplam_tutar")
    )
    activity_id: Optional[str] = Field(
        None, validation_alias=_aliases("activity_id", "activityId", "faaliyet_id")
    )
    activity_code: Optional[str] = Field(
        None,
        validation_alias=_aliases("activity_code", "relatedActivityCode", "faaliyet_kodu"),
    )
    budget_chapter_id: Optional[str] = Field(
        None, validation_alias=_aliases("budget_chapter_id", "budgetChapterId", "fasil_id")
    )
    status: Optional[str] = Field(None, validation_alias=_aliases("status", "durum"))


class ProgressEntryRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("value",)

    indicator_id: str = Field(validation_alias=_aliases("indicator_id", "indicatorId"))
    value: Optional[float] = Field(
        None, validation_alias=_aliases("value", "numeric_value", "numericValue")
    )
    timestamp: Optional[Union[datetime, date]] = Field(
        None, validation_alias=_aliases("timestamp", "recordDate", "record_date", "created_at")
    )


class MonitoringRecord(ProviderRecord):
    """Legacy monitoring row holding several indicator values at once."""
    indicator_values: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=_aliases("indicator_values", "indicatorValues")
    )
    timestamp: Optional[Union[datetime, date]] = Field(
        None, validation_alias=_aliases("timestamp", "recordDate", "record_date", "created_at")
    )


class RealizationRecord(ProviderRecord):
    NUMERIC_FIELDS: ClassVar[Tuple[str, ...]] = ("completion_percentage",)

    id: Optional[str] = None
    activity_id: str = Field(validation_alias=_aliases("activity_id", "activityId"))
    completion_percentage: Optional[float] = Field(
        None, validation_alias=_aliases("completion_percentage", "completionPercentage")
    )
    record_date: Optional[Union[date, datetime]] = Field(
        None, validation_alias=_aliases("record_date", "recordDate", "created_at")
    )
