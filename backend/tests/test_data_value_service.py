"""
Health Metrics Tracker Backend — Data Value Service Tests
===========================================================

What:  Tests for DataValueService submit/update/delete/list/aggregate.
How:   Runs against the in-memory SQLite database from conftest with a
       pinned clock, so the future-period rule is deterministic.

What we test:
    ✅ Valid submission is persisted with submitter and timestamps
    ✅ Rule precedence: not found → inactive → period → duplicate → value
    ✅ Duplicate (facility, indicator, period start) → ConflictError
    ✅ Unique constraint race on submit or update is reported as the same ConflictError
    ✅ Update re-validates and keeps the original submitter
    ✅ Update re-checks uniqueness when the period start moves
    ✅ Listing by facility/period/indicator and aggregates
    ✅ Database failures surface as DatabaseError
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidRangeError,
    InvalidStateError,
    InvalidValueError,
    NotFoundError,
)
from app.models import DataType, PeriodType
from app.schemas.data_value import DataValueCreate
from app.services.data_value_service import DataValueService

TODAY = date(2026, 6, 30)
JAN_START, JAN_END = date(2026, 1, 1), date(2026, 1, 31)


def submission(facility, indicator, value="50", start=date(2026, 1, 1), end=date(2026, 1, 31), **extra):
    return DataValueCreate(
        facility_id=facility.id,
        indicator_id=indicator.id,
        period_start=start,
        period_end=end,
        period_type=extra.pop("period_type", "MONTHLY"),
        value=None if value is None else Decimal(value),
        **extra,
    )


class TestSubmit:
    """Tests for the submission rule chain."""

    def setup_method(self):
        self.service = DataValueService(clock=lambda: TODAY)

    @pytest.mark.asyncio
    async def test_valid_submission_persisted(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.PERCENTAGE)

        result = await self.service.submit(
            db_session,
            submission(facility, indicator, "50", comment="Verified", created_by="nurse.k"),
        )

        assert result.id is not None
        assert result.value == Decimal("50")
        assert result.period_type == PeriodType.MONTHLY
        assert result.facility is facility
        assert result.indicator is indicator
        assert result.created_by == "nurse.k"
        assert result.created_at is not None
        assert result.updated_at is not None

    @pytest.mark.asyncio
    async def test_default_submitter(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        result = await self.service.submit(db_session, submission(facility, indicator))
        assert result.created_by == "system"

    @pytest.mark.asyncio
    async def test_missing_facility(self, db_session, make_indicator):
        indicator = await make_indicator()
        request = DataValueCreate(
            facility_id=999,
            indicator_id=indicator.id,
            period_start=date(2026, 1, 1),
            period_end=date(2026, 1, 31),
            period_type=PeriodType.MONTHLY,
            value=Decimal("1"),
        )
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.submit(db_session, request)
        assert exc_info.value.message == "Facility not found with id: 999"

    @pytest.mark.asyncio
    async def test_missing_indicator(self, db_session, make_facility):
        facility = await make_facility()
        request = DataValueCreate(
            facility_id=facility.id,
            indicator_id=404,
            period_start=date(2026, 1, 1),
            period_end=date(2026, 1, 31),
            period_type=PeriodType.MONTHLY,
            value=Decimal("1"),
        )
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.submit(db_session, request)
        assert exc_info.value.message == "Health indicator not found with id: 404"

    @pytest.mark.asyncio
    async def test_inactive_facility(self, db_session, make_facility, make_indicator):
        facility = await make_facility(name="Closed Clinic", active=False)
        indicator = await make_indicator()
        with pytest.raises(InvalidStateError) as exc_info:
            await self.service.submit(db_session, submission(facility, indicator))
        assert exc_info.value.message == "Cannot submit data for inactive facility: Closed Clinic"

    @pytest.mark.asyncio
    async def test_inactive_indicator(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(name="Retired Indicator", active=False)
        with pytest.raises(InvalidStateError) as exc_info:
            await self.service.submit(db_session, submission(facility, indicator))
        assert exc_info.value.message == "Cannot submit data for inactive indicator: Retired Indicator"

    @pytest.mark.asyncio
    async def test_inactive_facility_wins_over_bad_value(self, db_session, make_facility, make_indicator):
        facility = await make_facility(active=False)
        indicator = await make_indicator(data_type=DataType.PERCENTAGE)
        with pytest.raises(InvalidStateError):
            await self.service.submit(db_session, submission(facility, indicator, "500"))

    @pytest.mark.asyncio
    async def test_end_before_start(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        request = submission(facility, indicator, start=date(2026, 1, 31), end=date(2026, 1, 1))
        with pytest.raises(InvalidRangeError) as exc_info:
            await self.service.submit(db_session, request)
        assert exc_info.value.message == "Period end date cannot be before period start date"

    @pytest.mark.asyncio
    async def test_future_period(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        request = submission(facility, indicator, start=date(2026, 7, 1), end=date(2026, 7, 31))
        with pytest.raises(InvalidRangeError) as exc_info:
            await self.service.submit(db_session, request)
        assert exc_info.value.message == "Cannot submit data for future periods"

    @pytest.mark.asyncio
    async def test_period_starting_today_accepted(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        request = submission(facility, indicator, start=TODAY, end=date(2026, 7, 31))
        result = await self.service.submit(db_session, request)
        assert result.period_start == TODAY

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, db_session, make_facility, make_indicator):
        facility = await make_facility(name="Athens General Hospital")
        indicator = await make_indicator(name="Malaria Cases")
        await self.service.submit(db_session, submission(facility, indicator, "10"))

        # Different end date and value, same key
        with pytest.raises(ConflictError) as exc_info:
            await self.service.submit(
                db_session, submission(facility, indicator, "20", end=date(2026, 1, 15))
            )
        assert exc_info.value.message == (
            "Data already exists for facility 'Athens General Hospital', "
            "indicator 'Malaria Cases', and period starting '2026-01-01'"
        )

    @pytest.mark.asyncio
    async def test_duplicate_wins_over_bad_value(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.PERCENTAGE)
        await self.service.submit(db_session, submission(facility, indicator, "10"))
        with pytest.raises(ConflictError):
            await self.service.submit(db_session, submission(facility, indicator, "150"))

    @pytest.mark.asyncio
    async def test_same_facility_different_period_allowed(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        await self.service.submit(db_session, submission(facility, indicator))
        second = await self.service.submit(
            db_session,
            submission(facility, indicator, start=date(2026, 2, 1), end=date(2026, 2, 28)),
        )
        assert second.id is not None

    @pytest.mark.asyncio
    async def test_unique_constraint_race_reported_as_conflict(
        self, db_session, make_facility, make_indicator
    ):
        """Two writers that both pass the pre-check: the constraint decides."""
        facility = await make_facility(name="Athens General Hospital")
        indicator = await make_indicator(name="Malaria Cases")
        await self.service.submit(db_session, submission(facility, indicator))

        with patch.object(self.service, "_find_duplicate", AsyncMock(return_value=False)):
            with pytest.raises(ConflictError) as exc_info:
                await self.service.submit(db_session, submission(facility, indicator, "11"))
        assert exc_info.value.message == (
            "Data already exists for facility 'Athens General Hospital', "
            "indicator 'Malaria Cases', and period starting '2026-01-01'"
        )
        assert exc_info.value.context["constraint"] == "uk_facility_indicator_period"

    @pytest.mark.asyncio
    async def test_percentage_over_100(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.PERCENTAGE)
        with pytest.raises(InvalidValueError) as exc_info:
            await self.service.submit(db_session, submission(facility, indicator, "150"))
        assert exc_info.value.message == "Percentage value cannot exceed 100. Got: 150"

    @pytest.mark.asyncio
    async def test_boolean_two_rejected(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.BOOLEAN)
        with pytest.raises(InvalidValueError) as exc_info:
            await self.service.submit(db_session, submission(facility, indicator, "2"))
        assert exc_info.value.message == "Boolean value must be 0 or 1. Got: 2"

    @pytest.mark.asyncio
    async def test_null_value_rejected(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        with pytest.raises(InvalidValueError) as exc_info:
            await self.service.submit(db_session, submission(facility, indicator, None))
        assert exc_info.value.message == "Value cannot be null"

    @pytest.mark.asyncio
    async def test_failed_submission_writes_nothing(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.PERCENTAGE)
        with pytest.raises(InvalidValueError):
            await self.service.submit(db_session, submission(facility, indicator, "101"))
        assert await self.service.list_all(db_session) == []


class TestUpdate:
    """Tests for correcting an existing value."""

    def setup_method(self):
        self.service = DataValueService(clock=lambda: TODAY)

    @pytest.mark.asyncio
    async def test_update_changes_value_keeps_submitter(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        original = await self.service.submit(
            db_session, submission(facility, indicator, "10", created_by="clerk.a")
        )

        updated = await self.service.update(
            db_session,
            original.id,
            submission(facility, indicator, "12", comment="Recounted", created_by="someone.else"),
        )

        assert updated.id == original.id
        assert updated.value == Decimal("12")
        assert updated.comment == "Recounted"
        assert updated.created_by == "clerk.a"

    @pytest.mark.asyncio
    async def test_update_missing_value(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.update(db_session, 12345, submission(facility, indicator))
        assert exc_info.value.message == "Data value not found with id: 12345"

    @pytest.mark.asyncio
    async def test_update_applies_value_rules(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        indicator = await make_indicator(data_type=DataType.BOOLEAN)
        original = await self.service.submit(db_session, submission(facility, indicator, "1"))
        with pytest.raises(InvalidValueError):
            await self.service.update(db_session, original.id, submission(facility, indicator, "3"))

    @pytest.mark.asyncio
    async def test_update_applies_period_rules(self, db_session, make_facility, make_indicator):
        facility, indicator = await make_facility(), await make_indicator()
        original = await self.service.submit(db_session, submission(facility, indicator))
        with pytest.raises(InvalidRangeError):
            await self.service.update(
                db_session,
                original.id,
                submission(facility, indicator, start=date(2026, 8, 1), end=date(2026, 8, 31)),
            )

    @pytest.mark.asyncio
    async def test_update_to_inactive_facility_rejected(self, db_session, make_facility, make_indicator):
        facility = await make_facility()
        closed = await make_facility(name="Closed Clinic", active=False)
        indicator = await make_indicator()
        original = await self.service.submit(db_session, submission(facility, indicator))
        with pytest.raises(InvalidStateError):
            await self.service.update(db_session, original.id, submission(closed, indicator))

    @pytest.mark.asyncio
    async def test_update_moving_period_start_onto_existing_key(
        self, db_session, make_facility, make_indicator
    ):
        facility, indicator = await make_facility(), await make_indicator()
        await self.service.submit(db_session, submission(facility, indicator))
        february = await self.service.submit(
            db_session,
            submission(facility, indicator, start=date(2026, 2, 1), end=date(2026, 2, 28)),
        )

        with pytest.raises(ConflictError):
            await self.service.update(
                db_session,
                february.id,
                submission(facility, indicator, start=date(2026, 1, 1), end=date(2026, 1, 31)),
            )

    @pytest.mark.asyncio
    async def test_update_keeping_own_key_is_not_duplicate(
        self, db_session, make_facility, make_indicator
    ):
        facility, indicator = await make_facility(), await make_indicator()
        original = await self.service.submit(db_session, submission(facility, indicator, "5"))
        updated = await self.service.update(
            db_session, original.id, submission(facility, indicator, "6", end=date(2026, 1, 15))
        )
        assert updated.period_end == date(2026, 1, 15)

    @pytest.mark.asyncio
    async def test_update_moves_to_other_facility(self, db_session, make_facility, make_indicator):
        first = await make_facility(name="First")
        second = await make_facility(name="Second")
        indicator = await make_indicator()
        original = await self.service.submit(db_session, submission(first, indicator))

        updated = await self.service.update(db_session, original.id, submission(second, indicator))

        assert updated.facility is second
        assert updated.facility_id == second.id

    @pytest.mark.asyncio
    async def test_update_unique_constraint_race_reported_as_conflict(
        self, db_session, make_facility, make_indicator
    ):
        facility = await make_facility(name="Athens General Hospital")
        indicator = await make_indicator(name="Malaria Cases")
        await self.service.submit(db_session, submission(facility, indicator))
        february = await self.service.submit(
            db_session,
            submission(facility, indicator, start=date(2026, 2, 1), end=date(2026, 2, 28)),
        )

        with patch.object(self.service, "_find_duplicate", AsyncMock(return_value=False)):
            with pytest.raises(ConflictError) as exc_info:
                await self.service.update(db_session, february.id, submission(facility, indicator))
        assert exc_info.value.message.endswith("period starting '2026-01-01'")


class TestDeleteAndQueries:
    """Tests for delete, lookups and listings."""

    def setup_method(self):
        self.service = DataValueService(clock=lambda: TODAY)

    @pytest.mark.asyncio
    async def test_delete(self, db_session, make_facility, make_indicator, make_data_value):
        data_value = await make_data_value(await make_facility(), await make_indicator())
        await self.service.delete(db_session, data_value.id)
        with pytest.raises(NotFoundError):
            await self.service.get(db_session, data_value.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.delete(db_session, 77)

    @pytest.mark.asyncio
    async def test_list_by_facility_ordered_by_period(
        self, db_session, make_facility, make_indicator, make_data_value
    ):
        facility, other = await make_facility(), await make_facility(name="Other")
        indicator = await make_indicator()
        feb = await make_data_value(facility, indicator, "2", date(2026, 2, 1), date(2026, 2, 28))
        jan = await make_data_value(facility, indicator, "1", date(2026, 1, 1), date(2026, 1, 31))
        await make_data_value(other, indicator, "9")

        result = await self.service.list_by_facility(db_session, facility.id)

        assert [dv.id for dv in result] == [jan.id, feb.id]

    @pytest.mark.asyncio
    async def test_list_by_missing_facility(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.list_by_facility(db_session, 5)

    @pytest.mark.asyncio
    async def test_list_by_facility_and_period_requires_containment(
        self, db_session, make_facility, make_indicator, make_data_value
    ):
        facility, indicator = await make_facility(), await make_indicator()
        jan = await make_data_value(facility, indicator, "1", date(2026, 1, 1), date(2026, 1, 31))
        await make_data_value(facility, indicator, "2", date(2026, 1, 15), date(2026, 2, 14))

        result = await self.service.list_by_facility_and_period(
            db_session, facility.id, date(2026, 1, 1), date(2026, 1, 31)
        )

        assert [dv.id for dv in result] == [jan.id]

    @pytest.mark.asyncio
    async def test_list_by_missing_indicator(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.list_by_indicator(db_session, 3)
        assert exc_info.value.message.startswith("Health indicator not found")

    @pytest.mark.asyncio
    async def test_get_database_failure(self, mock_db_session):
        mock_db_session.get.side_effect = OperationalError("SELECT", {}, Exception("down"))
        with pytest.raises(DatabaseError):
            await self.service.get(mock_db_session, 1)

    @pytest.mark.asyncio
    async def test_delete_database_failure(self, mock_db_session):
        mock_db_session.get.return_value = MagicMock()
        mock_db_session.flush.side_effect = OperationalError("DELETE", {}, Exception("locked"))
        with pytest.raises(DatabaseError) as exc_info:
            await self.service.delete(mock_db_session, 8)
        assert exc_info.value.context == {"data_value_id": 8}


class TestAggregates:
    """Tests for total, average and per-region sums over stored values."""

    def setup_method(self):
        self.service = DataValueService(clock=lambda: TODAY)

    async def _two_regions(self, make_facility, make_indicator, make_data_value):
        attica = await make_facility(name="Athens General Hospital", region="Attica")
        crete = await make_facility(name="Heraklion Clinic", region="Crete")
        indicator = await make_indicator()
        await make_data_value(attica, indicator, "100", JAN_START, JAN_END)
        await make_data_value(crete, indicator, "50", JAN_START, JAN_END)
        # Outside January, never counted
        await make_data_value(crete, indicator, "999", date(2026, 2, 1), date(2026, 2, 28))
        return indicator

    @pytest.mark.asyncio
    async def test_region_sums_add_up_to_total(
        self, db_session, make_facility, make_indicator, make_data_value
    ):
        indicator = await self._two_regions(make_facility, make_indicator, make_data_value)
        mobile = await make_facility(name="Mobile Unit", region=None)
        await make_data_value(mobile, indicator, "7.5", JAN_START, JAN_END)

        by_region = await self.service.aggregate_by_region(db_session, indicator.id, JAN_START, JAN_END)
        total = await self.service.total(db_session, indicator.id, JAN_START, JAN_END)

        assert by_region["Unknown"] == Decimal("7.5")
        assert sum(by_region.values(), Decimal(0)) == total == Decimal("157.5")

    @pytest.mark.asyncio
    async def test_total(self, db_session, make_facility, make_indicator, make_data_value):
        indicator = await self._two_regions(make_facility, make_indicator, make_data_value)
        total = await self.service.total(db_session, indicator.id, date(2026, 1, 1), date(2026, 1, 31))
        assert total == Decimal("150")

    @pytest.mark.asyncio
    async def test_average(self, db_session, make_facility, make_indicator, make_data_value):
        indicator = await self._two_regions(make_facility, make_indicator, make_data_value)
        average = await self.service.average(
            db_session, indicator.id, date(2026, 1, 1), date(2026, 1, 31)
        )
        assert average == Decimal("75.00")

    @pytest.mark.asyncio
    async def test_aggregate_by_region(self, db_session, make_facility, make_indicator, make_data_value):
        indicator = await self._two_regions(make_facility, make_indicator, make_data_value)
        result = await self.service.aggregate_by_region(
            db_session, indicator.id, date(2026, 1, 1), date(2026, 1, 31)
        )
        assert result == {"Attica": Decimal("100"), "Crete": Decimal("50")}

    @pytest.mark.asyncio
    async def test_aggregate_by_region_filtered(
        self, db_session, make_facility, make_indicator, make_data_value
    ):
        indicator = await self._two_regions(make_facility, make_indicator, make_data_value)
        result = await self.service.aggregate_by_region(
            db_session, indicator.id, date(2026, 1, 1), date(2026, 1, 31), region="Crete"
        )
        assert result == {"Crete": Decimal("50")}

    @pytest.mark.asyncio
    async def test_empty_range_is_zero(self, db_session, make_indicator):
        indicator = await make_indicator()
        start, end = date(2025, 1, 1), date(2025, 12, 31)
        assert await self.service.total(db_session, indicator.id, start, end) == Decimal(0)
        assert await self.service.average(db_session, indicator.id, start, end) == Decimal(0)
        assert await self.service.aggregate_by_region(db_session, indicator.id, start, end) == {}

    @pytest.mark.asyncio
    async def test_aggregate_missing_indicator(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.total(db_session, 999, date(2026, 1, 1), date(2026, 1, 31))
