"""
Health Metrics Tracker Backend — DataValue Schemas
====================================================

What:  Submission body and the denormalized response for data values.
Why:   The client submits references by id but reads facility and indicator
       back as nested objects, so it never needs a second lookup.

Value handling:
    `value` is declared Optional so a missing or null value reaches the
    business validator and is reported as an invalid value (400) together
    with the other value rules, instead of as a schema error.
    Precision is a schema rule: at most 19 digits with 4 after the point,
    matching the NUMERIC(19,4) column, so the echoed value is the stored one.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, field_validator

from app.models.data_value import PeriodType
from app.schemas.common import CamelModel, JsonDecimal
from app.schemas.facility import FacilityResponse
from app.schemas.indicator import IndicatorResponse


class DataValueCreate(CamelModel):
    """
    Body of POST /api/data-values and PUT /api/data-values/{id}.

    Example:
        {
            "facilityId": 1,
            "indicatorId": 2,
            "periodStart": "2026-01-01",
            "periodEnd": "2026-01-31",
            "periodType": "MONTHLY",
            "value": 50,
            "comment": "Data verified by supervisor"
        }
    """
    facility_id: int = Field(gt=0)
    indicator_id: int = Field(gt=0)
    period_start: date
    period_end: date
    period_type: PeriodType
    value: Optional[Decimal] = Field(
        default=None,
        max_digits=19,
        decimal_places=4,
        description="Stored as NUMERIC(19,4); more precision is rejected, never rounded",
    )
    comment: Optional[str] = Field(default=None, max_length=500)
    created_by: Optional[str] = Field(default=None, max_length=100)

    @field_validator("period_type", mode="before")
    @classmethod
    def normalize_period_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DataValueResponse(CamelModel):
    id: int
    facility: FacilityResponse
    indicator: IndicatorResponse
    period_start: date
    period_end: date
    period_type: PeriodType
    value: JsonDecimal
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
