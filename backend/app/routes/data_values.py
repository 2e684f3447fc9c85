"""
Health Metrics Tracker Backend — Data Value Route Handlers
============================================================

What:  /api/data-values: submit, correct, delete, list and aggregate values.
Who:   The data entry form (submit/correct) and the dashboard (aggregates).

Route order matters: the fixed paths (/facility, /indicator, /aggregate,
/total, /average) are declared before /{data_value_id}, otherwise
"/total" would be parsed as an id.

Aggregates are returned as bare JSON numbers (total, average) or a
region → number object, integers when the value is integral.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, decimal_to_number
from app.schemas.data_value import DataValueCreate, DataValueResponse
from app.services.data_value_service import data_value_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/data-values", tags=["Data Values"])

_NOT_FOUND = {404: {"description": "Referenced record not found", "model": ErrorResponse}}
_BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}


def _to_response(values) -> List[DataValueResponse]:
    return [DataValueResponse.model_validate(v) for v in values]


# ── Collection ────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=List[DataValueResponse],
    summary="List all data values",
)
async def list_data_values(
    db: AsyncSession = Depends(get_db_session),
) -> List[DataValueResponse]:
    return _to_response(await data_value_service.list_all(db))


@router.post(
    "",
    response_model=DataValueResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_BAD_REQUEST,
        **_NOT_FOUND,
        409: {"description": "Duplicate facility/indicator/period start", "model": ErrorResponse},
    },
    summary="Submit a data value",
    description=(
        "Validates the submission (facility and indicator exist and are active, "
        "period is ordered and not in the future, no existing value for the same "
        "facility, indicator and period start, value within the indicator's bounds) "
        "and stores it."
    ),
)
async def submit_data_value(
    request: DataValueCreate,
    db: AsyncSession = Depends(get_db_session),
) -> DataValueResponse:
    data_value = await data_value_service.submit(db, request)
    return DataValueResponse.model_validate(data_value)


# ── Filtered listings ─────────────────────────────────────────────────────

@router.get(
    "/facility/{facility_id}",
    response_model=List[DataValueResponse],
    responses=_NOT_FOUND,
    summary="List data values reported by a facility",
)
async def list_by_facility(
    facility_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> List[DataValueResponse]:
    return _to_response(await data_value_service.list_by_facility(db, facility_id))


@router.get(
    "/facility/{facility_id}/period",
    response_model=List[DataValueResponse],
    responses=_NOT_FOUND,
    summary="List a facility's data values within a date range",
    description="Only values whose whole period lies inside [startDate, endDate] are returned.",
)
async def list_by_facility_and_period(
    facility_id: int,
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    db: AsyncSession = Depends(get_db_session),
) -> List[DataValueResponse]:
    values = await data_value_service.list_by_facility_and_period(
        db, facility_id, start_date, end_date
    )
    return _to_response(values)


@router.get(
    "/indicator/{indicator_id}",
    response_model=List[DataValueResponse],
    responses=_NOT_FOUND,
    summary="List data values reported against an indicator",
)
async def list_by_indicator(
    indicator_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> List[DataValueResponse]:
    return _to_response(await data_value_service.list_by_indicator(db, indicator_id))


# ── Aggregates ────────────────────────────────────────────────────────────

@router.get(
    "/aggregate/region",
    response_model=None,
    responses={
        200: {
            "description": "Sum of values per facility region",
            "content": {"application/json": {"example": {"Attica": 100, "Crete": 50}}},
        },
        **_NOT_FOUND,
    },
    summary="Sum an indicator's values per region",
    description=(
        "Facilities without a region are grouped under \"Unknown\". "
        "A region filter restricts the result to that single region."
    ),
)
async def aggregate_by_region(
    indicator_id: int = Query(alias="indicatorId"),
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    region: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Union[int, float]]:
    totals = await data_value_service.aggregate_by_region(
        db, indicator_id, start_date, end_date, region
    )
    return {name: decimal_to_number(total) for name, total in totals.items()}


@router.get(
    "/total",
    response_model=None,
    responses={200: {"description": "Sum of values", "content": {"application/json": {"example": 150}}}, **_NOT_FOUND},
    summary="Total of an indicator's values in a date range",
)
@router.get("/aggregate/total", response_model=None, include_in_schema=False)
async def total_value(
    indicator_id: int = Query(alias="indicatorId"),
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[int, float]:
    total = await data_value_service.total(db, indicator_id, start_date, end_date)
    return decimal_to_number(total)


@router.get(
    "/average",
    response_model=None,
    responses={200: {"description": "Mean value, 2 decimal places", "content": {"application/json": {"example": 75}}}, **_NOT_FOUND},
    summary="Average of an indicator's values in a date range",
    description="Rounded half-up to two decimal places; 0 when no value falls in the range.",
)
@router.get("/aggregate/average", response_model=None, include_in_schema=False)
async def average_value(
    indicator_id: int = Query(alias="indicatorId"),
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[int, float]:
    average = await data_value_service.average(db, indicator_id, start_date, end_date)
    return decimal_to_number(average)


# ── Single value ──────────────────────────────────────────────────────────

@router.get(
    "/{data_value_id}",
    response_model=DataValueResponse,
    responses=_NOT_FOUND,
    summary="Get a data value by id",
)
async def get_data_value(
    data_value_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> DataValueResponse:
    return DataValueResponse.model_validate(await data_value_service.get(db, data_value_id))


@router.put(
    "/{data_value_id}",
    response_model=DataValueResponse,
    responses={
        **_BAD_REQUEST,
        **_NOT_FOUND,
        409: {"description": "Correction would duplicate another value", "model": ErrorResponse},
    },
    summary="Correct a data value",
)
async def update_data_value(
    data_value_id: int,
    request: DataValueCreate,
    db: AsyncSession = Depends(get_db_session),
) -> DataValueResponse:
    data_value = await data_value_service.update(db, data_value_id, request)
    return DataValueResponse.model_validate(data_value)


@router.delete(
    "/{data_value_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_NOT_FOUND,
    summary="Delete a data value",
)
async def delete_data_value(
    data_value_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await data_value_service.delete(db, data_value_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
