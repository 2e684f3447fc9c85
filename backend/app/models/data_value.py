"""
Health Metrics Tracker Backend — DataValue SQLAlchemy Model
=============================================================

What:  ORM model representing the `data_values` fact table.
Why:   One row per reported measurement: facility × indicator × period.

Table Design Rationale:
    - value is NUMERIC(19, 4): case counts and percentages must not drift the
      way binary floats do; sums and averages are computed with Decimal
    - uk_facility_indicator_period: at most one row per
      (facility, indicator, period_start). The service checks this before
      inserting, but concurrent submissions can both pass that check, so the
      constraint is the authority and its violation maps to 409 Conflict
    - facility/indicator load eagerly (joined): every API response nests both
"""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.facility import ID_TYPE, Facility, utcnow
from app.models.indicator import HealthIndicator


class PeriodType(str, enum.Enum):
    """Granularity of the reporting period."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class DataValue(Base):
    """
    A single reported measurement, e.g. "150 malaria cases at Athens General
    Hospital for January 2026".
    """

    __tablename__ = "data_values"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    facility_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("facilities.id"), nullable=False
    )
    indicator_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("health_indicators.id"), nullable=False
    )

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[PeriodType] = mapped_column(
        Enum(PeriodType, name="data_value_period_type", native_enum=False,
             length=20, create_constraint=True),
        nullable=False,
    )

    value: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)

    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    facility: Mapped[Facility] = relationship(lazy="joined")
    indicator: Mapped[HealthIndicator] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "facility_id", "indicator_id", "period_start",
            name="uk_facility_indicator_period",
        ),
        Index("idx_dv_facility", "facility_id"),
        Index("idx_dv_indicator", "indicator_id"),
        Index("idx_dv_period_start", "period_start"),
        Index("idx_dv_facility_period", "facility_id", "period_start", "period_end"),
    )

    def __repr__(self) -> str:
        return (
            f"<DataValue(id={self.id}, facility_id={self.facility_id}, "
            f"indicator_id={self.indicator_id}, period_start='{self.period_start}', "
            f"value={self.value})>"
        )
