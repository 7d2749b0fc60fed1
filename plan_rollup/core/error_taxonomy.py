"""
Error Taxonomy for Roll-Up Computations

Provides systematic classification of data problems met while computing
completion and budget figures:
- Issue categories aligned to the kinds of bad input a snapshot can carry
- Severity indicators
- A collector that calculators share so problems are reported, not raised
- A contract-violation exception for the few cases that must fail loudly

Data-shape problems never raise. They degrade to 0 / GREEN / empty and are
recorded here so one malformed record cannot blank out an entire report.
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import logging
import traceback

logger = logging.getLogger(__name__)


class IssueCategory(Enum):
    """Systematic classification of snapshot problems."""
    # Hierarchy
    MISSING_REFERENCE = auto()
    UNKNOWN_ENTITY = auto()
    INVALID_RECORD = auto()

    # Numerics
    INVALID_NUMERIC = auto()
    DIVISION_GUARD = auto()

    # Caller errors
    CONTRACT_VIOLATION = auto()


class IssueSeverity(Enum):
    """Severity levels for issues."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_DEFAULT_SEVERITY = {
    IssueCategory.MISSING_REFERENCE: IssueSeverity.MEDIUM,
    IssueCategory.UNKNOWN_ENTITY: IssueSeverity.LOW,
    IssueCategory.INVALID_RECORD: IssueSeverity.HIGH,
    IssueCategory.INVALID_NUMERIC: IssueSeverity.MEDIUM,
    IssueCategory.DIVISION_GUARD: IssueSeverity.LOW,
    IssueCategory.CONTRACT_VIOLATION: IssueSeverity.CRITICAL,
}


@dataclass
class DataIssue:
    """A single classified problem found in a snapshot."""
    category: IssueCategory
    message: str
    severity: IssueSeverity = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.severity is None:
            self.severity = _DEFAULT_SEVERITY[self.category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.name,
            "severity": self.severity.value,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "context": self.context,
        }


class IssueLog:
    """
    Collects issues raised while reading or aggregating one snapshot.

    Every recorded issue is also emitted through ``logging`` so operators
    see it even when callers ignore the collected list. Identical issues
    are recorded once; roll-ups visit the same node many times.
    """

    def __init__(self):
        self._issues: List[DataIssue] = []
        self._seen = set()

    def record(
        self,
        category: IssueCategory,
        message: str,
        entity_type: str = None,
        entity_id: str = None,
        **context,
    ) -> Optional[DataIssue]:
        key = (category, entity_type, entity_id, message)
        if key in self._seen:
            return None
        self._seen.add(key)

        issue = DataIssue(
            category=category,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            context=context,
        )
        self._issues.append(issue)

        if issue.severity == IssueSeverity.LOW:
            logger.debug(f"[{category.name}] {message}")
        else:
            logger.warning(f"[{category.name}] {message}")
        return issue

    def by_category(self, category: IssueCategory) -> List[DataIssue]:
        return [i for i in self._issues if i.category == category]

    @property
    def issues(self) -> List[DataIssue]:
        return list(self._issues)

    def __len__(self) -> int:
        return len(self._issues)

    def to_dict(self) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for issue in self._issues:
            counts[issue.category.name] = counts.get(issue.category.name, 0) + 1
        return {
            "total": len(self._issues),
            "by_category": counts,
            "issues": [i.to_dict() for i in self._issues],
        }


@dataclass
class ClassifiedError:
    """A contract violation with full context."""
    category: IssueCategory
    severity: IssueSeverity
    message: str
    original_exception: Optional[Exception] = None
    context: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None

    def __post_init__(self):
        if self.original_exception and not self.stack_trace:
            self.stack_trace = ''.join(traceback.format_exception(
                type(self.original_exception),
                self.original_exception,
                self.original_exception.__traceback__
            ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.name,
            "severity": self.severity.value,
            "message": self.message,
            "context": self.context,
        }


class EngineContractError(Exception):
    """Raised when a caller breaks the engine's input contract (e.g. a missing collection)."""

    def __init__(self, message: str, context: Dict[str, Any] = None):
        super().__init__(message)
        self.category = IssueCategory.CONTRACT_VIOLATION
        self.severity = IssueSeverity.CRITICAL
        self.context = context or {}

    def classify(self) -> ClassifiedError:
        return ClassifiedError(
            category=self.category,
            severity=self.severity,
            message=str(self),
            original_exception=self,
            context=self.context,
        )
