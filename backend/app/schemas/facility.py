"""
Health Metrics Tracker Backend — Facility Request/Response Schemas
====================================================================

What:  API contract for the facility registry.
Why:   Create requires the identifying fields; update is partial (omitted or
       null fields keep their stored value).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from app.schemas.common import CamelModel


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


class FacilityCreate(CamelModel):
    """Body of POST /api/facilities. New facilities are always active."""
    code: str = Field(max_length=50, description="Unique facility code, e.g. FAC001")
    name: str = Field(max_length=200)
    type: str = Field(max_length=50, description="Hospital, Clinic, Health Center, ...")
    region: Optional[str] = Field(default=None, max_length=100)
    district: Optional[str] = Field(default=None, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    active: Optional[bool] = Field(default=None, description="Ignored on create")

    @field_validator("code", "name", "type")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class FacilityUpdate(CamelModel):
    """Body of PUT /api/facilities/{id}. Every field is optional."""
    code: Optional[str] = Field(default=None, max_length=50)
    name: Optional[str] = Field(default=None, max_length=200)
    type: Optional[str] = Field(default=None, max_length=50)
    region: Optional[str] = Field(default=None, max_length=100)
    district: Optional[str] = Field(default=None, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    active: Optional[bool] = None

    @field_validator("code", "name", "type")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)


class FacilityResponse(CamelModel):
    """Full facility representation, also nested inside data values."""
    id: int
    code: str
    name: str
    type: str
    region: Optional[str] = None
    district: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FacilityPage(CamelModel):
    """
    What:  Offset-paginated facility search result.
    Who:   The registry table, which pages by number over any sortable column.
    """
    content: List[FacilityResponse]
    total_elements: int = Field(description="Facilities matching the filters")
    total_pages: int
    number: int = Field(description="Zero-based page index")
    size: int = Field(description="Requested page size")
    number_of_elements: int = Field(description="Items on this page")
    first: bool
    last: bool
