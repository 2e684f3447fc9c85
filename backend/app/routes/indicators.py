"""
Health Metrics Tracker Backend — Health Indicator Route Handlers
==================================================================

What:  /api/indicators: indicator lookups and registry writes.
Who:   The data entry form (active list) and the dashboard's indicator picker.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.indicator import IndicatorCreate, IndicatorResponse, IndicatorUpdate
from app.services.indicator_service import indicator_service, parse_data_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/indicators", tags=["Health Indicators"])

_NOT_FOUND = {404: {"description": "Indicator not found", "model": ErrorResponse}}
_CONFLICT = {409: {"description": "Code already in use", "model": ErrorResponse}}


def _to_response(indicators) -> List[IndicatorResponse]:
    return [IndicatorResponse.model_validate(i) for i in indicators]


@router.get("", response_model=List[IndicatorResponse], summary="List all indicators")
async def list_indicators(
    db: AsyncSession = Depends(get_db_session),
) -> List[IndicatorResponse]:
    return await indicator_service.list_all(db)


@router.get("/active", response_model=List[IndicatorResponse], summary="List active indicators")
async def list_active_indicators(
    db: AsyncSession = Depends(get_db_session),
) -> List[IndicatorResponse]:
    return await indicator_service.list_active(db)


@router.get(
    "/code/{code}",
    response_model=IndicatorResponse,
    responses=_NOT_FOUND,
    summary="Get an indicator by code",
)
async def get_indicator_by_code(
    code: str,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    return IndicatorResponse.model_validate(await indicator_service.get_by_code(db, code))


@router.get(
    "/category/{category}",
    response_model=List[IndicatorResponse],
    summary="List indicators in a category",
)
async def list_indicators_by_category(
    category: str,
    db: AsyncSession = Depends(get_db_session),
) -> List[IndicatorResponse]:
    return _to_response(await indicator_service.list_by_category(db, category))


@router.get(
    "/data-type/{data_type}",
    response_model=List[IndicatorResponse],
    responses={400: {"description": "Unknown data type", "model": ErrorResponse}},
    summary="List indicators of a data type",
    description="NUMBER, PERCENTAGE or BOOLEAN, case-insensitive.",
)
async def list_indicators_by_data_type(
    data_type: str,
    db: AsyncSession = Depends(get_db_session),
) -> List[IndicatorResponse]:
    indicators = await indicator_service.list_by_data_type(db, parse_data_type(data_type))
    return _to_response(indicators)


@router.get(
    "/{indicator_id}",
    response_model=IndicatorResponse,
    responses=_NOT_FOUND,
    summary="Get an indicator by id",
)
async def get_indicator(
    indicator_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    return IndicatorResponse.model_validate(await indicator_service.get_indicator(db, indicator_id))


@router.post(
    "",
    response_model=IndicatorResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_CONFLICT, 400: {"description": "Invalid body", "model": ErrorResponse}},
    summary="Create an indicator",
)
async def create_indicator(
    request: IndicatorCreate,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    return IndicatorResponse.model_validate(await indicator_service.create(db, request))


@router.put(
    "/{indicator_id}",
    response_model=IndicatorResponse,
    responses={**_NOT_FOUND, **_CONFLICT},
    summary="Update an indicator",
)
async def update_indicator(
    indicator_id: int,
    request: IndicatorUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    indicator = await indicator_service.update(db, indicator_id, request)
    return IndicatorResponse.model_validate(indicator)


@router.delete(
    "/{indicator_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        **_NOT_FOUND,
        409: {"description": "Indicator still has data values", "model": ErrorResponse},
    },
    summary="Delete an indicator",
)
async def delete_indicator(
    indicator_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await indicator_service.delete(db, indicator_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{indicator_id}/deactivate",
    response_model=IndicatorResponse,
    responses=_NOT_FOUND,
    summary="Deactivate an indicator",
)
async def deactivate_indicator(
    indicator_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    indicator = await indicator_service.set_active(db, indicator_id, active=False)
    return IndicatorResponse.model_validate(indicator)


@router.post(
    "/{indicator_id}/reactivate",
    response_model=IndicatorResponse,
    responses=_NOT_FOUND,
    summary="Reactivate an indicator",
)
async def reactivate_indicator(
    indicator_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> IndicatorResponse:
    indicator = await indicator_service.set_active(db, indicator_id, active=True)
    return IndicatorResponse.model_validate(indicator)
