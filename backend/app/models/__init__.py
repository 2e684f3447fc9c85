# Models package init
"""
ORM models. Importing this package registers every table with Base.metadata
(Alembic autogenerate and the test suite's create_all rely on that).
"""

from app.models.facility import Facility
from app.models.indicator import DataType, HealthIndicator
from app.models.data_value import DataValue, PeriodType

__all__ = [
    "Facility",
    "HealthIndicator",
    "DataType",
    "DataValue",
    "PeriodType",
]
