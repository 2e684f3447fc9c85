"""
Health Metrics Tracker Backend — Data Value Service
=====================================================

What:  Accepts, corrects, lists and aggregates reported data values.
Why:   Every write passes the same ordered rule chain, so the error a client
       sees for a bad submission does not depend on which endpoint it used.
Who:   Called by the /api/data-values routes.

Submission Flow (POST /api/data-values):
    ┌──────────────┐   ┌──────────────┐   ┌────────────┐   ┌───────────┐   ┌────────┐
    │ Facility     │──▶│ Indicator    │──▶│ Period     │──▶│ Duplicate │──▶│ Value  │──▶ flush
    │ exists/active│   │ exists/active│   │ end≥start, │   │ check     │   │ bounds │
    └──────────────┘   └──────────────┘   │ not future │   └───────────┘   └────────┘
                                          └────────────┘
    The first failing rule decides the error:
        missing facility/indicator  → NotFoundError      (404)
        inactive facility/indicator → InvalidStateError  (400)
        bad period                  → InvalidRangeError  (400)
        same (facility, indicator, period start) exists → ConflictError (409)
        value out of bounds         → InvalidValueError  (400)

    Nothing is added to the session before all rules pass. The duplicate
    check is an early answer only: two concurrent submissions can both pass
    it, and the uk_facility_indicator_period constraint then fails the second
    flush, which is reported as the same ConflictError.

Aggregation:
    total / average / aggregate_by_region load the indicator's values and
    hand them to app.services.aggregation.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ConflictError, DatabaseError, InvalidStateError, NotFoundError
from app.models.data_value import DataValue
from app.models.facility import Facility
from app.models.indicator import HealthIndicator
from app.schemas.data_value import DataValueCreate
from app.services import aggregation
from app.services.facility_service import facility_service
from app.services.indicator_service import indicator_service
from app.services.validation import validate_period, validate_value

logger = logging.getLogger(__name__)

_ORDERING = (DataValue.period_start, DataValue.id)


def _duplicate_message(facility: Facility, indicator: HealthIndicator, period_start: date) -> str:
    return (
        f"Data already exists for facility '{facility.name}', "
        f"indicator '{indicator.name}', and period starting '{period_start.isoformat()}'"
    )


class DataValueService:
    """
    Business logic for data values.

    Args:
        clock: Returns "today" for the future-period rule. Injected so tests
               can pin the date.
    """

    def __init__(self, clock: Callable[[], date] = date.today):
        self._clock = clock

    # ── Submission ────────────────────────────────────────────────────────

    async def submit(self, db: AsyncSession, request: DataValueCreate) -> DataValue:
        """
        Validate and persist a new data value.

        Raises:
            NotFoundError, InvalidStateError, InvalidRangeError,
            ConflictError, InvalidValueError (in that precedence)
        """
        facility = await facility_service.get_facility(db, request.facility_id)
        self._require_active_facility(facility)

        indicator = await indicator_service.get_indicator(db, request.indicator_id)
        self._require_active_indicator(indicator)

        validate_period(request.period_start, request.period_end, self._clock())

        if await self._find_duplicate(db, facility.id, indicator.id, request.period_start):
            raise ConflictError(
                _duplicate_message(facility, indicator, request.period_start),
                context={
                    "facility_id": facility.id,
                    "indicator_id": indicator.id,
                    "period_start": request.period_start.isoformat(),
                },
            )

        validate_value(request.value, indicator.data_type)

        # A failed flush expires every loaded instance; build the message first
        conflict_message = _duplicate_message(facility, indicator, request.period_start)

        now = datetime.now(timezone.utc)
        data_value = DataValue(
            facility=facility,
            indicator=indicator,
            period_start=request.period_start,
            period_end=request.period_end,
            period_type=request.period_type,
            value=request.value,
            comment=request.comment,
            created_by=request.created_by or settings.default_submitter,
            created_at=now,
            updated_at=now,
        )
        db.add(data_value)
        await self._flush(db, conflict_message)

        logger.info(
            "Data value %s submitted: facility=%s indicator=%s period_start=%s value=%s by %s",
            data_value.id,
            facility.code,
            indicator.code,
            request.period_start,
            request.value,
            data_value.created_by,
        )
        return data_value

    async def update(
        self, db: AsyncSession, data_value_id: int, request: DataValueCreate
    ) -> DataValue:
        """
        Correct an existing data value.

        Changed references are re-resolved and must be active. Period and
        value rules always apply. Uniqueness is re-checked, excluding this row,
        whenever the facility, the indicator or the period start changes.
        The original submitter is kept.
        """
        data_value = await self.get(db, data_value_id)

        facility = data_value.facility
        if request.facility_id != data_value.facility_id:
            facility = await facility_service.get_facility(db, request.facility_id)
            self._require_active_facility(facility)

        indicator = data_value.indicator
        if request.indicator_id != data_value.indicator_id:
            indicator = await indicator_service.get_indicator(db, request.indicator_id)
            self._require_active_indicator(indicator)

        validate_period(request.period_start, request.period_end, self._clock())

        key_changed = (
            facility.id != data_value.facility_id
            or indicator.id != data_value.indicator_id
            or request.period_start != data_value.period_start
        )
        if key_changed and await self._find_duplicate(
            db, facility.id, indicator.id, request.period_start, exclude_id=data_value.id
        ):
            raise ConflictError(
                _duplicate_message(facility, indicator, request.period_start),
                context={"data_value_id": data_value.id},
            )

        validate_value(request.value, indicator.data_type)

        conflict_message = _duplicate_message(facility, indicator, request.period_start)
        data_value.facility = facility
        data_value.indicator = indicator
        data_value.period_start = request.period_start
        data_value.period_end = request.period_end
        data_value.period_type = request.period_type
        data_value.value = request.value
        data_value.comment = request.comment
        data_value.updated_at = datetime.now(timezone.utc)

        await self._flush(db, conflict_message)
        logger.info("Data value %s updated", data_value_id)
        return data_value

    async def delete(self, db: AsyncSession, data_value_id: int) -> None:
        data_value = await self.get(db, data_value_id)
        try:
            await db.delete(data_value)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting data value %s: %s", data_value_id, str(e))
            raise DatabaseError(context={"data_value_id": data_value_id})
        logger.info("Data value %s deleted", data_value_id)

    # ── Queries ───────────────────────────────────────────────────────────

    async def get(self, db: AsyncSession, data_value_id: int) -> DataValue:
        try:
            data_value = await db.get(DataValue, data_value_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching data value %s: %s", data_value_id, str(e))
            raise DatabaseError(context={"data_value_id": data_value_id})
        if data_value is None:
            raise NotFoundError(resource="Data value", resource_id=data_value_id)
        return data_value

    async def list_all(self, db: AsyncSession) -> List[DataValue]:
        return await self._list(db, select(DataValue).order_by(*_ORDERING))

    async def list_by_facility(self, db: AsyncSession, facility_id: int) -> List[DataValue]:
        await facility_service.get_facility(db, facility_id)
        return await self._list(
            db,
            select(DataValue)
            .where(DataValue.facility_id == facility_id)
            .order_by(*_ORDERING),
        )

    async def list_by_facility_and_period(
        self, db: AsyncSession, facility_id: int, start_date: date, end_date: date
    ) -> List[DataValue]:
        """Values of one facility whose whole period lies in [start_date, end_date]."""
        await facility_service.get_facility(db, facility_id)
        return await self._list(
            db,
            select(DataValue)
            .where(
                DataValue.facility_id == facility_id,
                DataValue.period_start >= start_date,
                DataValue.period_end <= end_date,
            )
            .order_by(*_ORDERING),
        )

    async def list_by_indicator(self, db: AsyncSession, indicator_id: int) -> List[DataValue]:
        await indicator_service.get_indicator(db, indicator_id)
        return await self._indicator_values(db, indicator_id)

    # ── Aggregation ───────────────────────────────────────────────────────

    async def total(
        self, db: AsyncSession, indicator_id: int, start_date: date, end_date: date
    ) -> Decimal:
        values = await self.list_by_indicator(db, indicator_id)
        return aggregation.total_value(values, start_date, end_date)

    async def average(
        self, db: AsyncSession, indicator_id: int, start_date: date, end_date: date
    ) -> Decimal:
        values = await self.list_by_indicator(db, indicator_id)
        return aggregation.average_value(values, start_date, end_date)

    async def aggregate_by_region(
        self,
        db: AsyncSession,
        indicator_id: int,
        start_date: date,
        end_date: date,
        region: Optional[str] = None,
    ) -> Dict[str, Decimal]:
        values = await self.list_by_indicator(db, indicator_id)
        return aggregation.sum_by_region(values, start_date, end_date, region)

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _require_active_facility(facility: Facility) -> None:
        if not facility.active:
            raise InvalidStateError(
                f"Cannot submit data for inactive facility: {facility.name}",
                field="facilityId",
            )

    @staticmethod
    def _require_active_indicator(indicator: HealthIndicator) -> None:
        if not indicator.active:
            raise InvalidStateError(
                f"Cannot submit data for inactive indicator: {indicator.name}",
                field="indicatorId",
            )

    async def _find_duplicate(
        self,
        db: AsyncSession,
        facility_id: int,
        indicator_id: int,
        period_start: date,
        exclude_id: Optional[int] = None,
    ) -> bool:
        query = select(DataValue.id).where(
            DataValue.facility_id == facility_id,
            DataValue.indicator_id == indicator_id,
            DataValue.period_start == period_start,
        )
        if exclude_id is not None:
            query = query.where(DataValue.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.first() is not None

    async def _indicator_values(self, db: AsyncSession, indicator_id: int) -> List[DataValue]:
        return await self._list(
            db,
            select(DataValue)
            .where(DataValue.indicator_id == indicator_id)
            .order_by(*_ORDERING),
        )

    async def _list(self, db: AsyncSession, query) -> List[DataValue]:
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error listing data values: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return list(result.scalars().all())

    async def _flush(self, db: AsyncSession, conflict_message: str) -> None:
        # Only plain strings here: the rolled-back session can no longer load attributes
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Unique constraint rejected data value: %s (%s)", conflict_message, str(e.orig))
            raise ConflictError(
                conflict_message,
                context={"constraint": "uk_facility_indicator_period"},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
data_value_service = DataValueService()
