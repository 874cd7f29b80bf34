"""
Store contracts for the evaluation pipeline.

Key patterns:
- Protocol-based dependency injection (stores are passed in, never global)
- Generic Result type for expected failures
- Async-first: every store call may suspend
"""

from typing import Generic, Protocol, TypeVar

from riskwatch.domain.models import (
    Alert,
    PointsAward,
    Reading,
    ReadingSubmission,
    RiskScore,
    Severity,
)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


_MISSING = _Missing()


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Unlike a plain Optional, an ok Result may legitimately carry ``None``
    (e.g. "no reading yet"), so the ok/err distinction is tracked separately.
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: object = _MISSING, error: ErrorT | None = None) -> None:
        if value is not _MISSING and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is _MISSING and error is None:
            raise ValueError("Result must have either value or error")
        self._value = None if value is _MISSING else value
        self._error: ErrorT | None = error

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result.err({self._error!r})"
        return f"Result.ok({self._value!r})"

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore[return-value]

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class VitalsStore(Protocol):
    """Append-only log of submitted readings per patient."""

    async def append_reading(
        self, patient_id: int, submission: ReadingSubmission
    ) -> Result[int, Exception]: ...

    async def get_latest_reading(self, patient_id: int) -> Result[Reading | None, Exception]: ...

    async def list_recent_readings(
        self, patient_id: int, limit: int
    ) -> Result[list[Reading], Exception]:
        """Most recent first."""
        ...


class RiskScoreStore(Protocol):
    """Append-only risk score rows; the current score is the latest."""

    async def append_risk_score(
        self, patient_id: int, score: int, factors: dict[str, int]
    ) -> Result[int, Exception]: ...

    async def get_current_risk_score(
        self, patient_id: int
    ) -> Result[RiskScore | None, Exception]: ...


class AlertStore(Protocol):
    """Alerts are appended by the engine and only ever flipped to read."""

    async def append_alert(
        self, patient_id: int, message: str, severity: Severity
    ) -> Result[int, Exception]: ...

    async def list_alerts(self, patient_id: int) -> Result[list[Alert], Exception]:
        """Newest first."""
        ...

    async def list_unread_alerts(self, patient_id: int) -> Result[list[Alert], Exception]: ...

    async def mark_alert_read(self, alert_id: int, patient_id: int) -> Result[bool, Exception]:
        """
        Conditionally set ``is_read`` for the alert owned by ``patient_id``.

        Returns ``Result.ok(False)`` when no alert with that id belongs to the
        patient. Marking an already-read alert is a successful no-op.
        """
        ...


class PointsLedger(Protocol):
    """Append-only points awards."""

    async def append_points_award(
        self, patient_id: int, points: int, reason: str
    ) -> Result[int, Exception]: ...

    async def get_total_points(self, patient_id: int) -> Result[int, Exception]: ...

    async def list_points_awards(self, patient_id: int) -> Result[list[PointsAward], Exception]: ...


class IdentityResolver(Protocol):
    """Maps authenticated users to the patient they own."""

    async def resolve_patient_id(self, user_id: int) -> Result[int, Exception]:
        """``Result.err(NotFound)`` when the user has no patient record."""
        ...


class HealthStore(
    VitalsStore, RiskScoreStore, AlertStore, PointsLedger, IdentityResolver, Protocol
):
    """Everything the portal needs from storage, as one injectable handle."""
