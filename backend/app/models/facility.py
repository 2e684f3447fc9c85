"""
Health Metrics Tracker Backend — Facility SQLAlchemy Model
============================================================

What:  ORM model representing the `facilities` table.
Why:   A facility is the reporting site every data value belongs to.
Who:   Used by FacilityService for CRUD and by DataValueService for lookups.

Table Design Rationale:
    - code: business identifier (e.g. "FAC001"), unique across the registry
    - region/district: free-text administrative labels; region drives the
      dashboard's group-by-region aggregation
    - active: soft-delete flag; inactive facilities keep their history but
      cannot receive new submissions
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# SQLite only autoincrements INTEGER PRIMARY KEY columns
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Facility(Base):
    """
    A reporting site (hospital, clinic, health center).

    Lifecycle:
        1. Created via registration (always active)
        2. Updated explicitly through PUT
        3. Deactivated (soft delete) or hard-deleted when nothing references it

    Query Patterns:
        - Registry search: filters on region/type/active + name/code substring
          → idx_facility_region, idx_facility_type, idx_facility_active
        - Dashboard drill-down by region → idx_facility_region_type
    """

    __tablename__ = "facilities"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Business identifier, unique across all facilities",
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Category label, e.g. "Hospital", "Clinic", "Health Center"
    type: Mapped[str] = mapped_column(String(50), nullable=False)

    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
        comment="Soft-delete flag; inactive facilities reject new submissions",
    )

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

    __table_args__ = (
        Index("idx_facility_region", "region"),
        Index("idx_facility_active", "active"),
        Index("idx_facility_type", "type"),
        Index("idx_facility_region_type", "region", "type"),
    )

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, code='{self.code}', active={self.active})>"
