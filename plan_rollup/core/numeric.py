"""
Numeric guards shared by every calculator.

Snapshot values arrive from forms and a remote store, so amounts can be
None, empty strings or text. These helpers turn such values into a 0
contribution and turn zero denominators into a defined 0 result.
"""
import math
import logging
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


def to_number(value: Any) -> Optional[float]:
    """Convert a raw value to float, or None when it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def number_or_zero(value: Any) -> float:
    number = to_number(value)
    return 0.0 if number is None else number


def safe_divide(numerator: float, denominator: Optional[float]) -> Optional[float]:
    """Safe division with zero handling."""
    if not denominator:
        return None
    return numerator / denominator


def safe_percentage(numerator: float, denominator: Optional[float]) -> float:
    """numerator / denominator * 100, or 0 when the denominator is zero or absent."""
    if denominator is None or denominator <= 0:
        return 0.0
    return numerator / denominator * 100


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)
