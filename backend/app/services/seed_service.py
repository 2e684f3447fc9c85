"""
Health Metrics Tracker Backend — Demo Data Seeder
===================================================

What:  Fills an empty database with Greek facilities, a standard indicator
       set and six months of monthly values.
When:  At startup when SEED_DEMO_DATA=true, and only if no facility exists.

Generated values stay inside each indicator's bounds:
    PERCENTAGE  60.00 – 95.00
    BOOLEAN     0 or 1
    NUMBER      category range × facility size (Hospital 3×, Clinic 1.5×)
One facility (FAC099) and one indicator (IND099) are seeded inactive so the
inactive-reference rules can be tried from the UI.
"""

import logging
import random
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.data_value import DataValue, PeriodType
from app.models.facility import Facility
from app.models.indicator import DataType, HealthIndicator

logger = logging.getLogger(__name__)

SEEDER_IDENTITY = "SYSTEM_SEEDER"
MONTHS_OF_DATA = 6

# code, name, type, region, district, latitude, longitude, active
FACILITIES = [
    ("FAC001", "Athens General Hospital", "Hospital", "Attica", "Athens", 37.9838, 23.7275, True),
    ("FAC002", "Piraeus Health Center", "Health Center", "Attica", "Piraeus", 37.9420, 23.6467, True),
    ("FAC003", "Glyfada Medical Clinic", "Clinic", "Attica", "Glyfada", 37.8653, 23.7539, True),
    ("FAC004", "Thessaloniki General Hospital", "Hospital", "Central Macedonia", "Thessaloniki", 40.6401, 22.9444, True),
    ("FAC005", "Kalamaria Health Center", "Health Center", "Central Macedonia", "Kalamaria", 40.5825, 22.9475, True),
    ("FAC006", "Patras University Hospital", "Hospital", "Western Greece", "Patras", 38.2466, 21.7346, True),
    ("FAC007", "Agrinio Health Center", "Health Center", "Western Greece", "Agrinio", 38.6214, 21.4079, True),
    ("FAC008", "Heraklion University Hospital", "Hospital", "Crete", "Heraklion", 35.3387, 25.1442, True),
    ("FAC009", "Chania General Hospital", "Hospital", "Crete", "Chania", 35.5138, 24.0180, True),
    ("FAC010", "Rethymno Health Center", "Health Center", "Crete", "Rethymno", 35.3662, 24.4824, True),
    ("FAC011", "Larissa General Hospital", "Hospital", "Thessaly", "Larissa", 39.6390, 22.4191, True),
    ("FAC012", "Volos Medical Clinic", "Clinic", "Thessaly", "Volos", 39.3617, 22.9444, True),
    ("FAC013", "Ioannina University Hospital", "Hospital", "Epirus", "Ioannina", 39.6650, 20.8537, True),
    ("FAC014", "Rhodes General Hospital", "Hospital", "South Aegean", "Rhodes", 36.4341, 28.2176, True),
    ("FAC015", "Kos Health Center", "Health Center", "South Aegean", "Kos", 36.8933, 27.2906, True),
    ("FAC099", "Closed Facility - Historical Data Only", "Clinic", "Attica", "Athens", 37.9838, 23.7275, False),
]

# code, name, category, description, data type, unit, active
INDICATORS = [
    ("IND001", "Malaria Cases", "Disease Surveillance", "Total confirmed malaria cases reported", DataType.NUMBER, "cases", True),
    ("IND002", "Tuberculosis Cases", "Disease Surveillance", "New tuberculosis cases diagnosed", DataType.NUMBER, "cases", True),
    ("IND003", "COVID-19 Cases", "Disease Surveillance", "Confirmed COVID-19 positive cases", DataType.NUMBER, "cases", True),
    ("IND004", "Child Vaccination Coverage", "Child Health", "Percentage of children fully vaccinated", DataType.PERCENTAGE, "%", True),
    ("IND005", "Child Malnutrition Cases", "Child Health", "Number of children diagnosed with malnutrition", DataType.NUMBER, "cases", True),
    ("IND006", "Under-5 Mortality Rate", "Child Health", "Deaths per 1000 live births for children under 5", DataType.NUMBER, "per 1000", True),
    ("IND007", "Antenatal Care Visits", "Maternal Health", "Number of antenatal care visits by pregnant women", DataType.NUMBER, "visits", True),
    ("IND008", "Facility-Based Deliveries", "Maternal Health", "Number of births occurring in health facilities", DataType.NUMBER, "births", True),
    ("IND009", "Maternal Mortality Ratio", "Maternal Health", "Maternal deaths per 100,000 live births", DataType.NUMBER, "per 100,000", True),
    ("IND010", "Outpatient Visits", "Service Delivery", "Total number of outpatient consultations", DataType.NUMBER, "visits", True),
    ("IND011", "Inpatient Admissions", "Service Delivery", "Total number of hospital admissions", DataType.NUMBER, "admissions", True),
    ("IND012", "Emergency Room Visits", "Service Delivery", "Total number of emergency room visits", DataType.NUMBER, "visits", True),
    ("IND013", "Patient Satisfaction Rate", "Quality of Care", "Percentage of patients satisfied with services", DataType.PERCENTAGE, "%", True),
    ("IND014", "Average Waiting Time", "Quality of Care", "Average waiting time for consultation in minutes", DataType.NUMBER, "minutes", True),
    ("IND015", "Bed Occupancy Rate", "Resources", "Percentage of hospital beds occupied", DataType.PERCENTAGE, "%", True),
    ("IND099", "Deprecated Indicator", "Other", "This indicator is no longer collected", DataType.NUMBER, "units", False),
]

FACILITY_SIZE = {"Hospital": 3.0, "Clinic": 1.5, "Health Center": 1.0}

# category → (exclusive upper bound of the draw, scaled by facility size?)
NUMBER_RANGES = {
    "Disease Surveillance": (50, True),
    "Child Health": (30, True),
    "Maternal Health": (100, True),
    "Service Delivery": (1000, True),
    "Quality of Care": (60, False),
    "Resources": (100, False),
}


def month_periods(today: date, months: int) -> List[Tuple[date, date]]:
    """(first day, last day) of the current month and the months before it."""
    periods = []
    start = today.replace(day=1)
    for _ in range(months):
        next_month = (start + timedelta(days=32)).replace(day=1)
        periods.append((start, next_month - timedelta(days=1)))
        start = (start - timedelta(days=1)).replace(day=1)
    return periods


def generate_value(indicator: HealthIndicator, facility_type: str, rng: random.Random) -> Decimal:
    if indicator.data_type == DataType.PERCENTAGE:
        return Decimal(str(round(60 + rng.random() * 35, 2)))
    if indicator.data_type == DataType.BOOLEAN:
        return Decimal(rng.randint(0, 1))

    upper, scaled = NUMBER_RANGES.get(indicator.category, (100, True))
    base = rng.randrange(upper)
    if scaled:
        base *= FACILITY_SIZE.get(facility_type, 1.0)
    return Decimal(round(base))


def generate_comment(indicator: HealthIndicator, value: Decimal) -> str:
    if indicator.data_type == DataType.PERCENTAGE:
        if value > 90:
            return "Excellent performance - above target"
        if value < 70:
            return "Below target - needs attention"
    if indicator.category == "Disease Surveillance" and value > 100:
        return "High case load - monitoring closely"
    return "Routine data collection"


async def seed_database(
    db: AsyncSession,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> bool:
    """
    Seed demo data into an empty database.

    Returns:
        True if data was written, False if facilities already existed.
    """
    existing = await db.execute(select(func.count(Facility.id)))
    if (existing.scalar() or 0) > 0:
        logger.info("Database already contains data. Skipping demo seeding.")
        return False

    today = today or date.today()
    rng = rng or random.Random()
    logger.info("Database is empty. Seeding demo data...")

    facilities = [
        Facility(
            code=code, name=name, type=ftype, region=region, district=district,
            latitude=lat, longitude=lng, active=active,
        )
        for code, name, ftype, region, district, lat, lng, active in FACILITIES
    ]
    indicators = [
        HealthIndicator(
            code=code, name=name, category=category, description=description,
            data_type=data_type, unit=unit, active=active,
        )
        for code, name, category, description, data_type, unit, active in INDICATORS
    ]
    db.add_all(facilities)
    db.add_all(indicators)
    await db.flush()
    logger.info("Seeded %d facilities and %d indicators", len(facilities), len(indicators))

    count = 0
    for period_start, period_end in month_periods(today, MONTHS_OF_DATA):
        for facility in facilities:
            if not facility.active:
                continue
            for indicator in indicators:
                if not indicator.active:
                    continue
                value = generate_value(indicator, facility.type, rng)
                db.add(
                    DataValue(
                        facility=facility,
                        indicator=indicator,
                        period_start=period_start,
                        period_end=period_end,
                        period_type=PeriodType.MONTHLY,
                        value=value,
                        comment=generate_comment(indicator, value),
                        created_by=SEEDER_IDENTITY,
                    )
                )
                count += 1

    await db.flush()
    logger.info("Seeded %d data values", count)
    return True
