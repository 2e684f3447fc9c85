"""
Health Metrics Tracker Backend — Health Indicator SQLAlchemy Model
====================================================================

What:  ORM model representing the `health_indicators` table.
Why:   An indicator defines what is being measured and how its values are
       bounded (its data type).

Data type is a closed enum (NUMBER, PERCENTAGE, BOOLEAN), stored as VARCHAR
with a CHECK constraint.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.facility import ID_TYPE, utcnow


class DataType(str, enum.Enum):
    """How values reported against an indicator are bounded."""

    NUMBER = "NUMBER"          # any non-negative amount (case counts, visits)
    PERCENTAGE = "PERCENTAGE"  # 0..100 inclusive
    BOOLEAN = "BOOLEAN"        # exactly 0 or 1


class HealthIndicator(Base):
    """
    A metric definition, e.g. "Malaria Cases" (NUMBER, unit "cases") or
    "Child Vaccination Coverage" (PERCENTAGE, unit "%").
    """

    __tablename__ = "health_indicators"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # e.g. "Disease Surveillance", "Maternal Health"
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    # Stored as VARCHAR(20) holding the enum name; CHECK constraint keeps
    # rows written outside the ORM inside the same three values
    data_type: Mapped[DataType] = mapped_column(
        Enum(DataType, name="indicator_data_type", native_enum=False,
             length=20, create_constraint=True),
        nullable=False,
    )

    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
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

    def __repr__(self) -> str:
        return (
            f"<HealthIndicator(id={self.id}, code='{self.code}', "
            f"data_type='{self.data_type.value}')>"
        )
