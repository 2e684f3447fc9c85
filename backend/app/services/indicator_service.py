"""
Health Metrics Tracker Backend — Health Indicator Service
===========================================================

What:  Registry operations for indicator definitions.
Who:   /api/indicators routes; DataValueService resolves indicators through
       get_indicator().

Caching:
    The dashboard and the data entry form fetch the full and the active
    indicator list on every page load, and the list changes rarely. Both are
    kept in a process-local dict of response snapshots.

    Every write clears the dict twice: right after its flush, and again when
    its session commits or rolls back. A list call from another request that
    lands between the two reads the old committed rows and refills the cache;
    the second clear drops that snapshot.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from app.models.data_value import DataValue
from app.models.indicator import DataType, HealthIndicator
from app.schemas.indicator import IndicatorCreate, IndicatorResponse, IndicatorUpdate

logger = logging.getLogger(__name__)

CACHE_ALL = "all"
CACHE_ACTIVE = "active"

# Session.info key: services that already listen for this session's commit/rollback
_HOOKED_SERVICES = "indicator_cache_hooks"


def parse_data_type(raw: str) -> DataType:
    """Case-insensitive DataType lookup for path parameters."""
    try:
        return DataType(raw.strip().upper())
    except ValueError:
        raise ValidationError(
            f"Data type must be NUMBER, PERCENTAGE, or BOOLEAN. Got: {raw}",
            field="dataType",
        )


class IndicatorService:

    def __init__(self):
        self._cache: Dict[str, List[IndicatorResponse]] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def _invalidate(self, db: AsyncSession) -> None:
        self.clear_cache()
        session = db.sync_session
        hooked = session.info.setdefault(_HOOKED_SERVICES, set())
        if id(self) not in hooked:
            event.listen(session, "after_commit", self._on_transaction_end)
            event.listen(session, "after_soft_rollback", self._on_transaction_end)
            hooked.add(id(self))

    def _on_transaction_end(self, session, *args) -> None:
        self.clear_cache()

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_indicator(self, db: AsyncSession, indicator_id: int) -> HealthIndicator:
        try:
            indicator = await db.get(HealthIndicator, indicator_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching indicator %s: %s", indicator_id, str(e))
            raise DatabaseError(context={"indicator_id": indicator_id})
        if indicator is None:
            raise NotFoundError(resource="Health indicator", resource_id=indicator_id)
        return indicator

    async def get_by_code(self, db: AsyncSession, code: str) -> HealthIndicator:
        indicator = await self._find_by_code(db, code)
        if indicator is None:
            raise NotFoundError(resource="Health indicator", resource_id=code, lookup="code")
        return indicator

    async def list_all(self, db: AsyncSession) -> List[IndicatorResponse]:
        return await self._cached(
            db, CACHE_ALL, select(HealthIndicator).order_by(HealthIndicator.name)
        )

    async def list_active(self, db: AsyncSession) -> List[IndicatorResponse]:
        return await self._cached(
            db,
            CACHE_ACTIVE,
            select(HealthIndicator)
            .where(HealthIndicator.active.is_(True))
            .order_by(HealthIndicator.name),
        )

    async def list_by_category(self, db: AsyncSession, category: str) -> List[HealthIndicator]:
        return await self._list(
            db,
            select(HealthIndicator)
            .where(HealthIndicator.category == category)
            .order_by(HealthIndicator.name),
        )

    async def list_by_data_type(self, db: AsyncSession, data_type: DataType) -> List[HealthIndicator]:
        return await self._list(
            db,
            select(HealthIndicator)
            .where(HealthIndicator.data_type == data_type)
            .order_by(HealthIndicator.name),
        )

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: IndicatorCreate) -> HealthIndicator:
        if await self._find_by_code(db, data.code) is not None:
            raise ConflictError(
                f"Health indicator with code '{data.code}' already exists",
                context={"code": data.code},
            )

        indicator = HealthIndicator(
            code=data.code,
            name=data.name,
            description=data.description,
            category=data.category,
            data_type=data.data_type,
            unit=data.unit,
            active=True,
        )
        db.add(indicator)
        await self._flush(db, indicator.code)
        self._invalidate(db)
        logger.info(
            "Health indicator created: %s (%s, id=%s)",
            indicator.code, indicator.data_type.value, indicator.id,
        )
        return indicator

    async def update(
        self, db: AsyncSession, indicator_id: int, data: IndicatorUpdate
    ) -> HealthIndicator:
        indicator = await self.get_indicator(db, indicator_id)

        if data.code is not None and data.code != indicator.code:
            if await self._find_by_code(db, data.code) is not None:
                raise ConflictError(
                    f"Health indicator with code '{data.code}' already exists",
                    context={"code": data.code},
                )

        changes = data.model_dump(exclude_none=True)
        for field, value in changes.items():
            setattr(indicator, field, value)
        indicator.updated_at = datetime.now(timezone.utc)

        await self._flush(db, indicator.code)
        self._invalidate(db)
        logger.info("Health indicator %s updated: %s", indicator.id, sorted(changes))
        return indicator

    async def delete(self, db: AsyncSession, indicator_id: int) -> None:
        indicator = await self.get_indicator(db, indicator_id)

        in_use = await db.execute(
            select(DataValue.id).where(DataValue.indicator_id == indicator_id).limit(1)
        )
        if in_use.first() is not None:
            raise ConflictError(
                f"Health indicator '{indicator.name}' has reported data values and cannot "
                "be deleted; deactivate it instead",
                context={"indicator_id": indicator_id},
            )

        await db.delete(indicator)
        await self._flush(db, indicator.code)
        self._invalidate(db)
        logger.info("Health indicator deleted: %s (id=%s)", indicator.code, indicator_id)

    async def set_active(
        self, db: AsyncSession, indicator_id: int, active: bool
    ) -> HealthIndicator:
        indicator = await self.get_indicator(db, indicator_id)
        indicator.active = active
        indicator.updated_at = datetime.now(timezone.utc)
        await self._flush(db, indicator.code)
        self._invalidate(db)
        logger.info(
            "Health indicator %s %s",
            indicator.code, "reactivated" if active else "deactivated",
        )
        return indicator

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _cached(self, db: AsyncSession, key: str, query) -> List[IndicatorResponse]:
        cached: Optional[List[IndicatorResponse]] = self._cache.get(key)
        if cached is not None:
            return cached
        indicators = [IndicatorResponse.model_validate(i) for i in await self._list(db, query)]
        self._cache[key] = indicators
        return indicators

    async def _find_by_code(self, db: AsyncSession, code: str) -> Optional[HealthIndicator]:
        result = await db.execute(select(HealthIndicator).where(HealthIndicator.code == code))
        return result.scalar_one_or_none()

    async def _list(self, db: AsyncSession, query) -> List[HealthIndicator]:
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error listing indicators: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return list(result.scalars().all())

    async def _flush(self, db: AsyncSession, code: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Integrity error writing indicator %s: %s", code, str(e.orig))
            raise ConflictError(
                f"Health indicator with code '{code}' conflicts with an existing record",
                context={"code": code},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
indicator_service = IndicatorService()
