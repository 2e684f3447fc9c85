"""
Health Metrics Tracker Backend — Aggregation Engine
=====================================================

What:  Totals, averages and per-region sums over a set of data values.
How:   Operates on values already loaded for one indicator. A value counts
       only if its whole period lies inside the requested range:
           period_start >= start_date AND period_end <= end_date

Empty selections are not errors: total and average are both 0.
Facilities without a region are grouped under UNKNOWN_REGION, the same
label the dashboard uses when a payload has no region.

The functions take any objects exposing period_start, period_end, value and
facility.region, so tests can pass plain stand-ins.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from app.models.data_value import DataValue

UNKNOWN_REGION = "Unknown"

_TWO_PLACES = Decimal("0.01")


def filter_within_period(
    values: Iterable[DataValue], start_date: date, end_date: date
) -> List[DataValue]:
    return [
        dv for dv in values
        if dv.period_start >= start_date and dv.period_end <= end_date
    ]


def total_value(values: Iterable[DataValue], start_date: date, end_date: date) -> Decimal:
    return sum(
        (dv.value for dv in filter_within_period(values, start_date, end_date)),
        Decimal(0),
    )


def average_value(values: Iterable[DataValue], start_date: date, end_date: date) -> Decimal:
    """Mean rounded half-up to 2 places; 0 for an empty selection."""
    selected = filter_within_period(values, start_date, end_date)
    if not selected:
        return Decimal(0)
    total = sum((dv.value for dv in selected), Decimal(0))
    return (total / len(selected)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def region_of(dv: DataValue) -> str:
    region = dv.facility.region if dv.facility is not None else None
    if region is None or not region.strip():
        return UNKNOWN_REGION
    return region


def sum_by_region(
    values: Iterable[DataValue],
    start_date: date,
    end_date: date,
    region: Optional[str] = None,
) -> Dict[str, Decimal]:
    """
    Sum values per facility region.

    A non-blank `region` keeps only that bucket, so the result has at most one
    key. Filtering by "Unknown" selects the facilities without a region.
    """
    wanted = region.strip() if region and region.strip() else None

    totals: Dict[str, Decimal] = {}
    for dv in filter_within_period(values, start_date, end_date):
        key = region_of(dv)
        if wanted is not None and key != wanted:
            continue
        totals[key] = totals.get(key, Decimal(0)) + dv.value
    return totals
