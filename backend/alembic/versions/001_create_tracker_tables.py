"""Create facilities, health_indicators and data_values tables

Revision ID: 001
Revises: None
Create Date: 2026-01-15 00:00:00.000000+00:00

What:  Initial schema for the health metrics tracker.
How:   Enum columns are VARCHAR(20) with CHECK constraints (not native
       PostgreSQL enums), matching the models' native_enum=False.

Rollback: downgrade() drops all three tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "facilities",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "code",
            sa.String(50),
            nullable=False,
            comment="Business identifier, unique across all facilities",
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("region", sa.String(100), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column(
            "active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
            comment="Soft-delete flag; inactive facilities reject new submissions",
        ),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_facilities_code"),
    )
    op.create_index("idx_facility_region", "facilities", ["region"])
    op.create_index("idx_facility_active", "facilities", ["active"])
    op.create_index("idx_facility_type", "facilities", ["type"])
    op.create_index("idx_facility_region_type", "facilities", ["region", "type"])

    op.create_table(
        "health_indicators",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("data_type", sa.String(20), nullable=False),
        sa.Column("unit", sa.String(50), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_health_indicators_code"),
        sa.CheckConstraint(
            "data_type IN ('NUMBER', 'PERCENTAGE', 'BOOLEAN')",
            name="indicator_data_type",
        ),
    )

    op.create_table(
        "data_values",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "facility_id",
            sa.BigInteger(),
            sa.ForeignKey("facilities.id", name="fk_data_values_facility"),
            nullable=False,
        ),
        sa.Column(
            "indicator_id",
            sa.BigInteger(),
            sa.ForeignKey("health_indicators.id", name="fk_data_values_indicator"),
            nullable=False,
        ),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("period_type", sa.String(20), nullable=False),
        sa.Column("value", sa.Numeric(19, 4), nullable=False),
        sa.Column("comment", sa.String(500), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "facility_id", "indicator_id", "period_start",
            name="uk_facility_indicator_period",
        ),
        sa.CheckConstraint(
            "period_type IN ('DAILY', 'WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY')",
            name="data_value_period_type",
        ),
    )
    op.create_index("idx_dv_facility", "data_values", ["facility_id"])
    op.create_index("idx_dv_indicator", "data_values", ["indicator_id"])
    op.create_index("idx_dv_period_start", "data_values", ["period_start"])
    op.create_index(
        "idx_dv_facility_period", "data_values", ["facility_id", "period_start", "period_end"]
    )


def downgrade() -> None:
    op.drop_table("data_values")
    op.drop_table("health_indicators")
    op.drop_table("facilities")
