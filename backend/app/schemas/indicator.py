"""
Health Metrics Tracker Backend — Health Indicator Schemas
===========================================================

Data types arrive in any case ("percentage") and are normalized to the
upper-case enum before validation; anything outside NUMBER/PERCENTAGE/BOOLEAN
is rejected with 400.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from app.models.indicator import DataType
from app.schemas.common import CamelModel


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class IndicatorCreate(CamelModel):
    """Body of POST /api/indicators. New indicators are always active."""
    code: str = Field(max_length=50, description="Unique indicator code, e.g. IND001")
    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    category: str = Field(max_length=100)
    data_type: DataType
    unit: Optional[str] = Field(default=None, max_length=50)
    active: Optional[bool] = Field(default=None, description="Ignored on create")

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v: Any) -> Any:
        return _upper(v)

    @field_validator("code", "name", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class IndicatorUpdate(CamelModel):
    """Body of PUT /api/indicators/{id}. Omitted fields are left unchanged."""
    code: Optional[str] = Field(default=None, max_length=50)
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    data_type: Optional[DataType] = None
    unit: Optional[str] = Field(default=None, max_length=50)
    active: Optional[bool] = None

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v: Any) -> Any:
        return _upper(v)


class IndicatorResponse(CamelModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    category: str
    data_type: DataType
    unit: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
