"""
Health Metrics Tracker Backend — Submission Rules
===================================================

What:  Pure checks applied to every data value before it is written.
Why:   Kept free of I/O so the rules can be exercised without a database and
       reused by both the submit and the update path.

Value bounds by data type:
    NUMBER      value ≥ 0
    PERCENTAGE  0 ≤ value ≤ 100
    BOOLEAN     value is exactly 0 or 1

DataType is a closed enum, so there is no "unknown data type" branch.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from app.exceptions import InvalidRangeError, InvalidValueError
from app.models.indicator import DataType

PERCENTAGE_MAX = Decimal("100")


def validate_value(value: Optional[Decimal], data_type: DataType) -> None:
    """
    Raise InvalidValueError if `value` is not acceptable for `data_type`.

    >>> validate_value(Decimal("100"), DataType.PERCENTAGE)
    >>> validate_value(Decimal("0.5"), DataType.BOOLEAN)
    Traceback (most recent call last):
        ...
    app.exceptions.InvalidValueError: Boolean value must be 0 or 1. Got: 0.5
    """
    if value is None:
        raise InvalidValueError("Value cannot be null", field="value")

    if value < 0:
        raise InvalidValueError("Value cannot be negative", field="value")

    if data_type == DataType.PERCENTAGE and value > PERCENTAGE_MAX:
        raise InvalidValueError(
            f"Percentage value cannot exceed 100. Got: {value}", field="value"
        )

    if data_type == DataType.BOOLEAN and value not in (Decimal(0), Decimal(1)):
        raise InvalidValueError(
            f"Boolean value must be 0 or 1. Got: {value}", field="value"
        )


def validate_period(period_start: date, period_end: date, today: date) -> None:
    """Period must be ordered and must not start after `today`."""
    if period_end < period_start:
        raise InvalidRangeError(
            "Period end date cannot be before period start date",
            field="periodEnd",
        )
    if period_start > today:
        raise InvalidRangeError(
            "Cannot submit data for future periods",
            field="periodStart",
        )
