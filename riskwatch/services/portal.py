"""
Patient-facing entry points that call into the evaluation engine.

These services are thin: they resolve capability, validate input, talk to the
stores and hand the interesting work to ``RiskEvaluationEngine``. Every step
reports its result explicitly; nothing is written fire-and-forget.
"""

from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from riskwatch.config import EngineConfig, PointsConfig
from riskwatch.domain.models import Alert, Reading, ReadingSubmission, SubmissionReceipt
from riskwatch.errors import InvalidReading, NotFound, RiskWatchError
from riskwatch.services.context import RequestContext, require_patient
from riskwatch.services.retry import guarded, read_with_retry
from riskwatch.services.risk_engine import RiskEvaluationEngine
from riskwatch.services.stores import HealthStore, Result

logger = structlog.get_logger(__name__)


class PointsAction(str, Enum):
    """Patient actions that earn points, with the ledger reason recorded for each."""

    READING_SUBMISSION = "Vitals submission"
    MEDICATION_ADHERENCE = "Medication adherence"
    TELEMEDICINE_REQUEST = "Telemedicine request submission"


class PointsService:
    """Writes a single award per qualifying action."""

    def __init__(self, store: HealthStore, config: PointsConfig | None = None) -> None:
        self.store = store
        self.config = config or PointsConfig()
        self.logger = logger.bind(component="points_service")

    def points_for(self, action: PointsAction) -> int:
        return {
            PointsAction.READING_SUBMISSION: self.config.reading_submission,
            PointsAction.MEDICATION_ADHERENCE: self.config.medication_adherence,
            PointsAction.TELEMEDICINE_REQUEST: self.config.telemedicine_request,
        }[action]

    async def award(
        self, context: RequestContext, action: PointsAction
    ) -> Result[int, RiskWatchError]:
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        return await self.award_to_patient(patient.unwrap().patient_id, action)

    async def award_to_patient(
        self, patient_id: int, action: PointsAction
    ) -> Result[int, RiskWatchError]:
        """Returns the number of points awarded (0 when the action is configured off)."""
        points = self.points_for(action)
        if points <= 0:
            return Result.ok(0)

        appended = await guarded(
            "append_points_award",
            lambda: self.store.append_points_award(patient_id, points, action.value),
        )
        if appended.is_err():
            self.logger.error(
                "points_award_failed",
                patient_id=patient_id,
                action=action.name,
                error=str(appended.unwrap_err()),
            )
            return Result.err(appended.unwrap_err())

        self.logger.info("points_awarded", patient_id=patient_id, action=action.name, points=points)
        return Result.ok(points)


class VitalsSubmissionService:
    """
    Accepts a reading and evaluates it.

    The reading append and its evaluation run under the patient's lock, so
    readings submitted one after another are evaluated in the same order and
    each evaluation sees its own reading as the latest. The submission is
    acknowledged once the reading is stored, whatever happens to evaluation.
    """

    def __init__(
        self,
        store: HealthStore,
        engine: RiskEvaluationEngine,
        points: PointsService,
    ) -> None:
        self.store = store
        self.engine = engine
        self.points = points
        self.logger = logger.bind(component="vitals_submission")

    async def submit(
        self, context: RequestContext, payload: ReadingSubmission | dict[str, Any]
    ) -> Result[SubmissionReceipt, RiskWatchError]:
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id
        log = self.logger.bind(patient_id=patient_id)

        if isinstance(payload, ReadingSubmission):
            submission = payload
        else:
            try:
                submission = ReadingSubmission.model_validate(payload)
            except ValidationError as e:
                log.warning("reading_rejected", errors=e.error_count(), error=str(e))
                return Result.err(InvalidReading(str(e)))

        async with self.engine.serializer.hold(patient_id):
            appended = await guarded(
                "append_reading", lambda: self.store.append_reading(patient_id, submission)
            )
            if appended.is_err():
                log.error("reading_append_failed", error=str(appended.unwrap_err()))
                return Result.err(appended.unwrap_err())

            reading_id = appended.unwrap()
            log.info("reading_accepted", reading_id=reading_id)

            evaluation = await self.engine.evaluate_locked(patient_id)

        awarded = await self.points.award_to_patient(patient_id, PointsAction.READING_SUBMISSION)

        return Result.ok(
            SubmissionReceipt(
                reading_id=reading_id,
                patient_id=patient_id,
                points_awarded=awarded.unwrap_or(0),
                points_error=str(awarded.unwrap_err()) if awarded.is_err() else None,
                evaluation=evaluation.unwrap() if evaluation.is_ok() else None,
                evaluation_error=str(evaluation.unwrap_err()) if evaluation.is_err() else None,
            )
        )


class AlertAcknowledgementService:
    """Flips an alert to read for the patient who owns it."""

    def __init__(self, store: HealthStore) -> None:
        self.store = store
        self.logger = logger.bind(component="alert_acknowledgement")

    async def mark_read(
        self, context: RequestContext, alert_id: int
    ) -> Result[None, RiskWatchError]:
        """Idempotent: acknowledging an already-read alert succeeds again."""
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id

        updated = await guarded(
            "mark_alert_read", lambda: self.store.mark_alert_read(alert_id, patient_id)
        )
        if updated.is_err():
            self.logger.error(
                "alert_mark_read_failed",
                patient_id=patient_id,
                alert_id=alert_id,
                error=str(updated.unwrap_err()),
            )
            return Result.err(updated.unwrap_err())

        if not updated.unwrap():
            return Result.err(NotFound(f"Alert {alert_id} not found for patient {patient_id}"))

        self.logger.info("alert_marked_read", patient_id=patient_id, alert_id=alert_id)
        return Result.ok(None)


class PatientDashboardService:
    """Read views over the persisted state for the patient dashboard."""

    def __init__(self, store: HealthStore, config: EngineConfig | None = None) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.logger = logger.bind(component="patient_dashboard")

    async def current_risk_score(self, context: RequestContext) -> Result[int, RiskWatchError]:
        """Latest persisted score, or 0 when the patient has never been evaluated."""
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id

        current = await read_with_retry(
            "get_current_risk_score",
            lambda: self.store.get_current_risk_score(patient_id),
            self.config,
            self.logger,
        )
        if current.is_err():
            return Result.err(current.unwrap_err())
        risk_score = current.unwrap()
        return Result.ok(risk_score.score if risk_score is not None else 0)

    async def alerts(self, context: RequestContext) -> Result[list[Alert], RiskWatchError]:
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id
        return await read_with_retry(
            "list_alerts", lambda: self.store.list_alerts(patient_id), self.config, self.logger
        )

    async def total_points(self, context: RequestContext) -> Result[int, RiskWatchError]:
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id
        return await read_with_retry(
            "get_total_points",
            lambda: self.store.get_total_points(patient_id),
            self.config,
            self.logger,
        )

    async def latest_vitals(
        self, context: RequestContext
    ) -> Result[Reading | None, RiskWatchError]:
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id
        return await read_with_retry(
            "get_latest_reading",
            lambda: self.store.get_latest_reading(patient_id),
            self.config,
            self.logger,
        )

    async def vitals_trend(
        self, context: RequestContext, limit: int | None = None
    ) -> Result[list[Reading], RiskWatchError]:
        """
        The most recent readings for charting, oldest first.

        Raises:
            ValueError: if ``limit`` is given and is not positive.
        """
        if limit is not None and limit <= 0:
            raise ValueError(f"Trend limit must be positive, got {limit}")
        patient = require_patient(context)
        if patient.is_err():
            return Result.err(patient.unwrap_err())
        patient_id = patient.unwrap().patient_id
        window = limit if limit is not None else self.config.trend_window

        recent = await read_with_retry(
            "list_recent_readings",
            lambda: self.store.list_recent_readings(patient_id, window),
            self.config,
            self.logger,
        )
        if recent.is_err():
            return Result.err(recent.unwrap_err())
        return Result.ok(list(reversed(recent.unwrap())))
