"""
Domain models for patient vitals, risk scores, alerts and points.

These models represent the core business concepts and are framework-agnostic.
Persisted records are frozen; the only permitted mutation in the system, the
alert read flag, happens in the stores and produces a new ``Alert``.
"""

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from riskwatch.errors import InvalidReading


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_blood_pressure(value: str | None) -> tuple[float, float]:
    """
    Split a combined ``"systolic/diastolic"`` string into two numbers.

    Raises:
        InvalidReading: if the value does not have exactly two finite numeric parts.
    """
    if not isinstance(value, str):
        raise InvalidReading(f"Blood pressure must be a 'systolic/diastolic' string, got {value!r}")

    parts = value.split("/")
    if len(parts) != 2:
        raise InvalidReading(f"Blood pressure {value!r} is not in 'systolic/diastolic' form")

    try:
        systolic, diastolic = (float(part.strip()) for part in parts)
    except ValueError as e:
        raise InvalidReading(f"Blood pressure {value!r} has a non-numeric part") from e

    if not (math.isfinite(systolic) and math.isfinite(diastolic)):
        raise InvalidReading(f"Blood pressure {value!r} has a non-finite part")

    return systolic, diastolic


class Severity(str, Enum):
    """Alert severity bands, ordered Low < Medium < High."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class ReadingSubmission(BaseModel):
    """Inbound vitals payload, validated before anything is stored."""

    model_config = ConfigDict(frozen=True)

    blood_pressure: str = Field(description="Combined 'systolic/diastolic' value, e.g. '120/80'")
    heart_rate: float | None = Field(default=None, description="Beats per minute")
    blood_sugar: float | None = Field(default=None, description="mg/dL")
    oxygen_level: float | None = Field(default=None, description="SpO2 percent")
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("blood_pressure")
    @classmethod
    def blood_pressure_must_split(cls, v: str) -> str:
        try:
            parse_blood_pressure(v)
        except InvalidReading as e:
            raise ValueError(str(e)) from e
        return v.strip()

    @field_validator("heart_rate", "blood_sugar", "oxygen_level", mode="before")
    @classmethod
    def unparseable_vital_is_missing(cls, v: Any) -> float | None:
        """A vital that is not a finite number is stored as missing and scores 0."""
        if v is None or isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return value if math.isfinite(value) else None


class Reading(BaseModel):
    """One timestamped set of vital-sign measurements for a patient."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    patient_id: int
    blood_pressure: str | None
    heart_rate: float | None = None
    blood_sugar: float | None = None
    oxygen_level: float | None = None
    notes: str | None = None
    recorded_at: datetime = Field(default_factory=_utcnow)

    @property
    def systolic(self) -> float:
        return parse_blood_pressure(self.blood_pressure)[0]

    @property
    def diastolic(self) -> float:
        return parse_blood_pressure(self.blood_pressure)[1]


class RiskAssessment(BaseModel):
    """Output of the risk model: a clamped score and its per-factor breakdown."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    factors: dict[str, int]


class RiskScore(BaseModel):
    """A persisted evaluation result. The current score is the latest row."""

    model_config = ConfigDict(frozen=True)

    id: int
    patient_id: int
    score: int = Field(ge=0, le=100)
    factors: dict[str, int] = Field(default_factory=dict)
    computed_at: datetime = Field(default_factory=_utcnow)


class AlertDecision(BaseModel):
    """Output of the alert policy when an evaluation warrants an alert."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    message: str


class Alert(BaseModel):
    """A persisted notification raised when risk crosses a severity band."""

    model_config = ConfigDict(frozen=True)

    id: int
    patient_id: int
    message: str
    severity: Severity
    created_at: datetime = Field(default_factory=_utcnow)
    is_read: bool = False


class PointsAward(BaseModel):
    """An append-only points ledger entry."""

    model_config = ConfigDict(frozen=True)

    id: int
    patient_id: int
    points: int = Field(gt=0)
    reason: str
    awarded_at: datetime = Field(default_factory=_utcnow)


class EvaluationState(str, Enum):
    """States of a single evaluation run."""

    FETCHING = "fetching"
    SCORING = "scoring"
    PERSISTING = "persisting"
    ALERTING = "alerting"
    DONE = "done"
    FAILED = "failed"


class EvaluationOutcome(BaseModel):
    """What one engine run did. ``score`` is None when there was nothing to evaluate."""

    model_config = ConfigDict(frozen=True)

    patient_id: int
    state: EvaluationState
    score: int | None = None
    factors: dict[str, int] = Field(default_factory=dict)
    alert_raised: bool = False
    alert_suppressed: bool = False
    severity: Severity | None = None
    risk_score_id: int | None = None
    alert_id: int | None = None
    alert_error: str | None = Field(
        default=None, description="Set when the alert append failed after the score was committed"
    )


class SubmissionReceipt(BaseModel):
    """Acknowledgement returned to the submitter, independent of evaluation success."""

    model_config = ConfigDict(frozen=True)

    reading_id: int
    patient_id: int
    points_awarded: int = 0
    points_error: str | None = None
    evaluation: EvaluationOutcome | None = None
    evaluation_error: str | None = None
