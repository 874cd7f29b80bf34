"""
In-process implementation of every store protocol.

Used by tests and the demo runner. Outages can be simulated per operation to
exercise the pipeline's failure paths without a real database.
"""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime
from itertools import count

import structlog

from riskwatch.domain.models import (
    Alert,
    PointsAward,
    Reading,
    ReadingSubmission,
    RiskScore,
    Severity,
)
from riskwatch.errors import NotFound, StorageUnavailable
from riskwatch.services.stores import Result

logger = structlog.get_logger(__name__)


class InMemoryHealthStore:
    """
    Dict-backed store keyed by patient id.

    Every method completes without awaiting in between reads and writes, so
    each call is atomic with respect to other tasks on the event loop.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self.logger = logger.bind(component="in_memory_store")

        self._ids = count(1)
        self._patients_by_user: dict[int, int] = {}
        self._readings: defaultdict[int, list[Reading]] = defaultdict(list)
        self._risk_scores: defaultdict[int, list[RiskScore]] = defaultdict(list)
        self._alerts: dict[int, Alert] = {}
        self._awards: defaultdict[int, list[PointsAward]] = defaultdict(list)

        # operation name -> remaining failures (None: until cleared)
        self._outages: dict[str, int | None] = {}
        self.calls: defaultdict[str, int] = defaultdict(int)

    # Test and demo helpers

    def register_patient(self, user_id: int, patient_id: int | None = None) -> int:
        """Map a user to a patient record, creating the patient id if needed."""
        patient_id = patient_id if patient_id is not None else next(self._ids)
        self._patients_by_user[user_id] = patient_id
        return patient_id

    def simulate_outage(self, operation: str, times: int | None = None) -> None:
        """Make ``operation`` fail the next ``times`` calls (every call when None)."""
        self._outages[operation] = times

    def clear_outages(self) -> None:
        self._outages.clear()

    def seed_reading(self, reading: Reading) -> Reading:
        """Insert a raw reading, bypassing submission validation."""
        stored = reading.model_copy(update={"id": next(self._ids)})
        self._readings[stored.patient_id].append(stored)
        return stored

    def risk_scores(self, patient_id: int) -> list[RiskScore]:
        return list(self._risk_scores[patient_id])

    def alerts(self, patient_id: int) -> list[Alert]:
        return [a for a in self._alerts.values() if a.patient_id == patient_id]

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        if operation in self._outages:
            remaining = self._outages[operation]
            if remaining is not None:
                if remaining <= 1:
                    del self._outages[operation]
                else:
                    self._outages[operation] = remaining - 1
            raise ConnectionError(f"Simulated outage for {operation}")

    def _failed(self, operation: str, error: Exception) -> Result:
        self.logger.warning("store_operation_failed", operation=operation, error=str(error))
        return Result.err(StorageUnavailable(operation, error))

    # IdentityResolver

    async def resolve_patient_id(self, user_id: int) -> Result[int, Exception]:
        try:
            await self._enter("resolve_patient_id")
        except ConnectionError as e:
            return self._failed("resolve_patient_id", e)
        if user_id not in self._patients_by_user:
            return Result.err(NotFound(f"No patient record for user {user_id}"))
        return Result.ok(self._patients_by_user[user_id])

    # VitalsStore

    async def append_reading(
        self, patient_id: int, submission: ReadingSubmission
    ) -> Result[int, Exception]:
        try:
            await self._enter("append_reading")
        except ConnectionError as e:
            return self._failed("append_reading", e)
        reading = Reading(
            id=next(self._ids),
            patient_id=patient_id,
            **submission.model_dump(),
            recorded_at=datetime.now(UTC),
        )
        self._readings[patient_id].append(reading)
        return Result.ok(reading.id)

    async def get_latest_reading(self, patient_id: int) -> Result[Reading | None, Exception]:
        try:
            await self._enter("get_latest_reading")
        except ConnectionError as e:
            return self._failed("get_latest_reading", e)
        readings = self._readings.get(patient_id)
        if not readings:
            return Result.ok(None)
        return Result.ok(max(readings, key=lambda r: (r.recorded_at, r.id or 0)))

    async def list_recent_readings(
        self, patient_id: int, limit: int
    ) -> Result[list[Reading], Exception]:
        try:
            await self._enter("list_recent_readings")
        except ConnectionError as e:
            return self._failed("list_recent_readings", e)
        ordered = sorted(
            self._readings.get(patient_id, []),
            key=lambda r: (r.recorded_at, r.id or 0),
            reverse=True,
        )
        return Result.ok(ordered[:limit])

    # RiskScoreStore

    async def append_risk_score(
        self, patient_id: int, score: int, factors: dict[str, int]
    ) -> Result[int, Exception]:
        try:
            await self._enter("append_risk_score")
        except ConnectionError as e:
            return self._failed("append_risk_score", e)
        row = RiskScore(
            id=next(self._ids), patient_id=patient_id, score=score, factors=dict(factors)
        )
        self._risk_scores[patient_id].append(row)
        return Result.ok(row.id)

    async def get_current_risk_score(self, patient_id: int) -> Result[RiskScore | None, Exception]:
        try:
            await self._enter("get_current_risk_score")
        except ConnectionError as e:
            return self._failed("get_current_risk_score", e)
        rows = self._risk_scores.get(patient_id)
        if not rows:
            return Result.ok(None)
        return Result.ok(max(rows, key=lambda r: (r.computed_at, r.id)))

    # AlertStore

    async def append_alert(
        self, patient_id: int, message: str, severity: Severity
    ) -> Result[int, Exception]:
        try:
            await self._enter("append_alert")
        except ConnectionError as e:
            return self._failed("append_alert", e)
        alert = Alert(id=next(self._ids), patient_id=patient_id, message=message, severity=severity)
        self._alerts[alert.id] = alert
        return Result.ok(alert.id)

    async def list_alerts(self, patient_id: int) -> Result[list[Alert], Exception]:
        try:
            await self._enter("list_alerts")
        except ConnectionError as e:
            return self._failed("list_alerts", e)
        alerts = sorted(self.alerts(patient_id), key=lambda a: (a.created_at, a.id), reverse=True)
        return Result.ok(alerts)

    async def list_unread_alerts(self, patient_id: int) -> Result[list[Alert], Exception]:
        try:
            await self._enter("list_unread_alerts")
        except ConnectionError as e:
            return self._failed("list_unread_alerts", e)
        return Result.ok([a for a in self.alerts(patient_id) if not a.is_read])

    async def mark_alert_read(self, alert_id: int, patient_id: int) -> Result[bool, Exception]:
        try:
            await self._enter("mark_alert_read")
        except ConnectionError as e:
            return self._failed("mark_alert_read", e)
        alert = self._alerts.get(alert_id)
        if alert is None or alert.patient_id != patient_id:
            return Result.ok(False)
        if not alert.is_read:
            self._alerts[alert_id] = alert.model_copy(update={"is_read": True})
        return Result.ok(True)

    # PointsLedger

    async def append_points_award(
        self, patient_id: int, points: int, reason: str
    ) -> Result[int, Exception]:
        try:
            await self._enter("append_points_award")
        except ConnectionError as e:
            return self._failed("append_points_award", e)
        award = PointsAward(id=next(self._ids), patient_id=patient_id, points=points, reason=reason)
        self._awards[patient_id].append(award)
        return Result.ok(award.id)

    async def get_total_points(self, patient_id: int) -> Result[int, Exception]:
        try:
            await self._enter("get_total_points")
        except ConnectionError as e:
            return self._failed("get_total_points", e)
        return Result.ok(sum(a.points for a in self._awards.get(patient_id, [])))

    async def list_points_awards(self, patient_id: int) -> Result[list[PointsAward], Exception]:
        try:
            await self._enter("list_points_awards")
        except ConnectionError as e:
            return self._failed("list_points_awards", e)
        return Result.ok(list(self._awards.get(patient_id, [])))
