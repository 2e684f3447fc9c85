"""
Health Metrics Tracker Backend — Facility Route Handlers
==========================================================

What:  /api/facilities: paged search, lookups and registry writes.
Who:   The facility list page and the data entry form's facility picker.

Soft delete is exposed as POST /{id}/deactivate and /{id}/reactivate;
DELETE is a hard delete and is refused for facilities with data values.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.facility import FacilityCreate, FacilityPage, FacilityResponse, FacilityUpdate
from app.services.facility_service import MAX_PAGE_SIZE, facility_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/facilities", tags=["Facilities"])

_NOT_FOUND = {404: {"description": "Facility not found", "model": ErrorResponse}}
_CONFLICT = {409: {"description": "Code already in use", "model": ErrorResponse}}


@router.get(
    "",
    response_model=FacilityPage,
    responses={400: {"description": "Invalid paging or sort", "model": ErrorResponse}},
    summary="Search facilities",
    description=(
        "Filters by region, type, active flag and a case-insensitive search over "
        "name and code. Results are paginated (zero-based page) and sorted by one "
        "of: name, code, type, region, district, createdAt, id."
    ),
)
async def search_facilities(
    response: Response,
    region: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None, description="Hospital, Clinic, Health Center, ..."),
    active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Substring of name or code"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    sort: str = Query(default="name"),
    direction: str = Query(default="asc", description="asc or desc"),
    db: AsyncSession = Depends(get_db_session),
) -> FacilityPage:
    result = await facility_service.search(
        db,
        region=region,
        facility_type=type,
        active=active,
        search=search,
        page=page,
        size=size,
        sort=sort,
        direction=direction,
    )
    # Lets table UIs show "x of N" without reading the body
    response.headers["X-Total-Count"] = str(result.total_elements)
    return result


@router.get(
    "/active",
    response_model=List[FacilityResponse],
    summary="List active facilities",
)
async def list_active_facilities(
    db: AsyncSession = Depends(get_db_session),
) -> List[FacilityResponse]:
    return [FacilityResponse.model_validate(f) for f in await facility_service.list_active(db)]


@router.get(
    "/code/{code}",
    response_model=FacilityResponse,
    responses=_NOT_FOUND,
    summary="Get a facility by code",
)
async def get_facility_by_code(
    code: str,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    return FacilityResponse.model_validate(await facility_service.get_by_code(db, code))


@router.get(
    "/region/{region}",
    response_model=List[FacilityResponse],
    summary="List facilities in a region",
)
async def list_facilities_by_region(
    region: str,
    db: AsyncSession = Depends(get_db_session),
) -> List[FacilityResponse]:
    facilities = await facility_service.list_by_region(db, region)
    return [FacilityResponse.model_validate(f) for f in facilities]


@router.get(
    "/{facility_id}",
    response_model=FacilityResponse,
    responses=_NOT_FOUND,
    summary="Get a facility by id",
)
async def get_facility(
    facility_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    return FacilityResponse.model_validate(await facility_service.get_facility(db, facility_id))


@router.post(
    "",
    response_model=FacilityResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_CONFLICT,
    summary="Register a facility",
    description="New facilities are always created active.",
)
async def create_facility(
    request: FacilityCreate,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    return FacilityResponse.model_validate(await facility_service.create(db, request))


@router.put(
    "/{facility_id}",
    response_model=FacilityResponse,
    responses={**_NOT_FOUND, **_CONFLICT},
    summary="Update a facility",
    description="Only fields present and non-null in the body are changed.",
)
async def update_facility(
    facility_id: int,
    request: FacilityUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    facility = await facility_service.update(db, facility_id, request)
    return FacilityResponse.model_validate(facility)


@router.delete(
    "/{facility_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        **_NOT_FOUND,
        409: {"description": "Facility still has data values", "model": ErrorResponse},
    },
    summary="Delete a facility",
)
async def delete_facility(
    facility_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await facility_service.delete(db, facility_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{facility_id}/deactivate",
    response_model=FacilityResponse,
    responses=_NOT_FOUND,
    summary="Deactivate a facility",
    description="Soft delete: history is kept, new submissions are rejected.",
)
async def deactivate_facility(
    facility_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    facility = await facility_service.set_active(db, facility_id, active=False)
    return FacilityResponse.model_validate(facility)


@router.post(
    "/{facility_id}/reactivate",
    response_model=FacilityResponse,
    responses=_NOT_FOUND,
    summary="Reactivate a facility",
)
async def reactivate_facility(
    facility_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> FacilityResponse:
    facility = await facility_service.set_active(db, facility_id, active=True)
    return FacilityResponse.model_validate(facility)
