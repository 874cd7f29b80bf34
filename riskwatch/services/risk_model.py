"""
Additive point-band risk model.

Each vital contributes independently from its own band table; the sum is
capped at 100. Only the single latest reading is scored.
"""

import math

from riskwatch.domain.models import Reading, RiskAssessment, parse_blood_pressure

MAX_SCORE = 100

BLOOD_PRESSURE = "blood_pressure"
HEART_RATE = "heart_rate"
BLOOD_SUGAR = "blood_sugar"
OXYGEN_LEVEL = "oxygen_level"

FACTOR_NAMES = (BLOOD_PRESSURE, HEART_RATE, BLOOD_SUGAR, OXYGEN_LEVEL)


def _usable(value: float | None) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def blood_pressure_points(systolic: float, diastolic: float) -> int:
    if systolic > 140 or diastolic > 90:
        return 30
    if systolic > 130 or diastolic > 85:
        return 15
    return 0


def heart_rate_points(heart_rate: float | None) -> int:
    if not _usable(heart_rate):
        return 0
    if heart_rate > 100 or heart_rate < 60:
        return 20
    if heart_rate > 90 or heart_rate < 65:
        return 10
    return 0


def blood_sugar_points(blood_sugar: float | None) -> int:
    if not _usable(blood_sugar):
        return 0
    if blood_sugar > 140:
        return 25
    if blood_sugar > 120:
        return 12
    return 0


def oxygen_level_points(oxygen_level: float | None) -> int:
    if not _usable(oxygen_level):
        return 0
    if oxygen_level < 92:
        return 25
    if oxygen_level < 95:
        return 10
    return 0


def compute_risk(reading: Reading) -> RiskAssessment:
    """
    Score a reading.

    Missing or non-finite vitals contribute nothing to their factor. The
    blood-pressure field is the exception: it must split into two numbers.

    Raises:
        InvalidReading: if the blood-pressure field cannot be split.
    """
    systolic, diastolic = parse_blood_pressure(reading.blood_pressure)

    factors = {
        BLOOD_PRESSURE: blood_pressure_points(systolic, diastolic),
        HEART_RATE: heart_rate_points(reading.heart_rate),
        BLOOD_SUGAR: blood_sugar_points(reading.blood_sugar),
        OXYGEN_LEVEL: oxygen_level_points(reading.oxygen_level),
    }
    score = min(MAX_SCORE, sum(factors.values()))
    return RiskAssessment(score=score, factors=factors)
