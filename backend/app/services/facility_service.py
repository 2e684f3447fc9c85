"""
Health Metrics Tracker Backend — Facility Service
===================================================

What:  Registry operations for reporting sites: search, lookup, create,
       update, soft and hard delete.
Who:   Called by the /api/facilities routes and by DataValueService, which
       resolves facilities through get_facility().

Search (GET /api/facilities):
    Filters combine with AND; a None filter is ignored.
        region / type   exact match
        active          exact match
        search          case-insensitive substring of name OR code
    Results are offset-paginated and sorted by one whitelisted column.
    Unknown sort fields are rejected instead of being passed to SQL.

Transactions:
    Methods flush but never commit; get_db_session() commits once the route
    returns, or rolls back if anything raised.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from app.models.data_value import DataValue
from app.models.facility import Facility
from app.schemas.facility import FacilityCreate, FacilityPage, FacilityResponse, FacilityUpdate

logger = logging.getLogger(__name__)

# API sort name → mapped column
SORTABLE_COLUMNS = {
    "name": Facility.name,
    "code": Facility.code,
    "type": Facility.type,
    "region": Facility.region,
    "district": Facility.district,
    "createdAt": Facility.created_at,
    "created_at": Facility.created_at,
    "id": Facility.id,
}

MAX_PAGE_SIZE = 100


class FacilityService:
    """
    Business logic for the facility registry.

    Every method takes the request-scoped AsyncSession as its first argument
    and returns ORM instances; routes convert them to response schemas.
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_facility(self, db: AsyncSession, facility_id: int) -> Facility:
        try:
            facility = await db.get(Facility, facility_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching facility %s: %s", facility_id, str(e))
            raise DatabaseError(context={"facility_id": facility_id})
        if facility is None:
            raise NotFoundError(resource="Facility", resource_id=facility_id)
        return facility

    async def get_by_code(self, db: AsyncSession, code: str) -> Facility:
        facility = await self._find_by_code(db, code)
        if facility is None:
            raise NotFoundError(resource="Facility", resource_id=code, lookup="code")
        return facility

    async def list_by_region(self, db: AsyncSession, region: str) -> List[Facility]:
        return await self._list(
            db, select(Facility).where(Facility.region == region).order_by(Facility.name)
        )

    async def list_active(self, db: AsyncSession) -> List[Facility]:
        return await self._list(
            db, select(Facility).where(Facility.active.is_(True)).order_by(Facility.name)
        )

    async def search(
        self,
        db: AsyncSession,
        region: Optional[str] = None,
        facility_type: Optional[str] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 0,
        size: int = 10,
        sort: str = "name",
        direction: str = "asc",
    ) -> FacilityPage:
        """
        Filtered, sorted, offset-paginated facility listing.

        Query plan (region filter):
            SELECT ... FROM facilities WHERE region = :region
            ORDER BY name ASC LIMIT :size OFFSET :page*size
            → idx_facility_region, then sort of the matching rows

        Raises:
            ValidationError: page < 0, size outside 1..100, or unknown sort field
        """
        if page < 0:
            raise ValidationError("Page index must not be negative", field="page")
        if size < 1 or size > MAX_PAGE_SIZE:
            raise ValidationError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}", field="size"
            )
        column = SORTABLE_COLUMNS.get(sort)
        if column is None:
            allowed = ", ".join(sorted(k for k in SORTABLE_COLUMNS if k != "created_at"))
            raise ValidationError(
                f"Invalid sort field '{sort}'. Allowed: {allowed}", field="sort"
            )
        order = desc if direction.lower() == "desc" else asc

        conditions = []
        if region:
            conditions.append(Facility.region == region)
        if facility_type:
            conditions.append(Facility.type == facility_type)
        if active is not None:
            conditions.append(Facility.active.is_(active))
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(Facility.name).like(pattern),
                    func.lower(Facility.code).like(pattern),
                )
            )

        try:
            count_result = await db.execute(
                select(func.count(Facility.id)).where(*conditions)
            )
            total = count_result.scalar() or 0

            # id as tie-breaker keeps pages stable when sort values repeat
            query = (
                select(Facility)
                .where(*conditions)
                .order_by(order(column), order(Facility.id))
                .offset(page * size)
                .limit(size)
            )
            result = await db.execute(query)
            facilities = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error searching facilities: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        total_pages = math.ceil(total / size) if total else 0
        return FacilityPage(
            content=[FacilityResponse.model_validate(f) for f in facilities],
            total_elements=total,
            total_pages=total_pages,
            number=page,
            size=size,
            number_of_elements=len(facilities),
            first=page == 0,
            last=page >= total_pages - 1,
        )

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: FacilityCreate) -> Facility:
        """Register a new facility. New facilities are always active."""
        if await self._find_by_code(db, data.code) is not None:
            raise ConflictError(
                f"Facility with code '{data.code}' already exists",
                context={"code": data.code},
            )

        facility = Facility(
            code=data.code,
            name=data.name,
            type=data.type,
            region=data.region,
            district=data.district,
            latitude=data.latitude,
            longitude=data.longitude,
            active=True,
        )
        db.add(facility)
        await self._flush(db, facility.code)
        logger.info("Facility created: %s (id=%s)", facility.code, facility.id)
        return facility

    async def update(self, db: AsyncSession, facility_id: int, data: FacilityUpdate) -> Facility:
        """Apply the non-null fields of `data`; a new code must still be unique."""
        facility = await self.get_facility(db, facility_id)

        if data.code is not None and data.code != facility.code:
            if await self._find_by_code(db, data.code) is not None:
                raise ConflictError(
                    f"Facility with code '{data.code}' already exists",
                    context={"code": data.code},
                )

        changes: Dict[str, object] = data.model_dump(exclude_none=True)
        for field, value in changes.items():
            setattr(facility, field, value)
        facility.updated_at = datetime.now(timezone.utc)

        await self._flush(db, facility.code)
        logger.info("Facility %s updated: %s", facility.id, sorted(changes))
        return facility

    async def delete(self, db: AsyncSession, facility_id: int) -> None:
        """
        Hard delete. Facilities that still have data values are refused with
        409; deactivate those instead.
        """
        facility = await self.get_facility(db, facility_id)

        in_use = await db.execute(
            select(func.count(DataValue.id)).where(DataValue.facility_id == facility_id)
        )
        if (in_use.scalar() or 0) > 0:
            raise ConflictError(
                f"Facility '{facility.name}' has reported data values and cannot be deleted; "
                "deactivate it instead",
                context={"facility_id": facility_id},
            )

        await db.delete(facility)
        await self._flush(db, facility.code)
        logger.info("Facility deleted: %s (id=%s)", facility.code, facility_id)

    async def set_active(self, db: AsyncSession, facility_id: int, active: bool) -> Facility:
        """Soft delete (active=False) or restore (active=True)."""
        facility = await self.get_facility(db, facility_id)
        facility.active = active
        facility.updated_at = datetime.now(timezone.utc)
        await self._flush(db, facility.code)
        logger.info(
            "Facility %s %s", facility.code, "reactivated" if active else "deactivated"
        )
        return facility

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _find_by_code(self, db: AsyncSession, code: str) -> Optional[Facility]:
        result = await db.execute(select(Facility).where(Facility.code == code))
        return result.scalar_one_or_none()

    async def _list(self, db: AsyncSession, query) -> List[Facility]:
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error listing facilities: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return list(result.scalars().all())

    async def _flush(self, db: AsyncSession, code: str) -> None:
        # Unique code index is the final arbiter when two writers race
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Integrity error writing facility %s: %s", code, str(e.orig))
            raise ConflictError(
                f"Facility with code '{code}' conflicts with an existing record",
                context={"code": code},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
facility_service = FacilityService()
