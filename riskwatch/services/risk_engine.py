"""
Risk evaluation engine.

One evaluation walks Fetching -> Scoring -> Persisting -> Alerting -> Done,
and any step may end it in Failed instead. Steps are strictly sequential
because each consumes the previous step's result.

Guarantees:
- No alert is ever raised for a score that was not persisted.
- A failed alert append is reported but leaves the committed score in place.
- Evaluations for one patient are serialized in arrival order; different
  patients proceed in parallel.
- Once Persisting has started the commit runs to completion, even if the
  caller is cancelled.
"""

import asyncio
from typing import Any, Protocol

import structlog

from riskwatch.config import EngineConfig
from riskwatch.domain.models import (
    EvaluationOutcome,
    EvaluationState,
    Reading,
    RiskAssessment,
)
from riskwatch.errors import RiskWatchError
from riskwatch.services.alert_policy import decide, should_suppress
from riskwatch.services.retry import guarded, read_with_retry
from riskwatch.services.risk_model import compute_risk
from riskwatch.services.serialization import PatientSerializer
from riskwatch.services.stores import AlertStore, Result, RiskScoreStore, VitalsStore

logger = structlog.get_logger(__name__)


class EngineStore(VitalsStore, RiskScoreStore, AlertStore, Protocol):
    """The subset of storage the engine touches."""


class RiskEvaluationEngine:
    """
    Orchestrates a single patient's risk evaluation against injected stores.

    The engine owns no connections: the store handle and its lifecycle belong
    to the process entry point.
    """

    def __init__(
        self,
        store: EngineStore,
        config: EngineConfig | None = None,
        serializer: PatientSerializer | None = None,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.serializer = serializer or PatientSerializer()
        self.logger = logger.bind(component="risk_engine")

    async def evaluate(self, patient_id: int) -> Result[EvaluationOutcome, RiskWatchError]:
        """Evaluate the patient's latest reading under the patient's lock."""
        async with self.serializer.hold(patient_id):
            return await self.evaluate_locked(patient_id)

    async def evaluate_locked(self, patient_id: int) -> Result[EvaluationOutcome, RiskWatchError]:
        """Evaluate assuming the caller already holds the patient's lock."""
        log = self.logger.bind(patient_id=patient_id)

        fetched = await read_with_retry(
            "get_latest_reading",
            lambda: self.store.get_latest_reading(patient_id),
            self.config,
            log,
        )
        if fetched.is_err():
            return self._fail(log, EvaluationState.FETCHING, fetched.unwrap_err())

        reading: Reading | None = fetched.unwrap()
        if reading is None:
            log.info("evaluation_skipped_no_reading")
            return Result.ok(EvaluationOutcome(patient_id=patient_id, state=EvaluationState.DONE))

        try:
            assessment = compute_risk(reading)
        except RiskWatchError as e:
            return self._fail(log, EvaluationState.SCORING, e, reading_id=reading.id)

        log.debug("risk_scored", score=assessment.score, factors=assessment.factors)

        # Past this point the evaluation must not be abandoned half-written.
        commit = asyncio.ensure_future(self._commit(patient_id, assessment, log))
        try:
            return await asyncio.shield(commit)
        except asyncio.CancelledError:
            log.warning("evaluation_cancel_deferred_until_commit")
            # The caller's patient lock must stay held until the commit is done,
            # however many times the caller is cancelled meanwhile.
            while not commit.done():
                try:
                    await asyncio.wait({commit})
                except asyncio.CancelledError:
                    log.warning("evaluation_cancel_repeated_during_commit")
            self._log_deferred_commit(log, commit)
            raise

    async def _commit(
        self, patient_id: int, assessment: RiskAssessment, log: Any
    ) -> Result[EvaluationOutcome, RiskWatchError]:
        persisted = await guarded(
            "append_risk_score",
            lambda: self.store.append_risk_score(patient_id, assessment.score, assessment.factors),
        )
        if persisted.is_err():
            return self._fail(log, EvaluationState.PERSISTING, persisted.unwrap_err())

        risk_score_id = persisted.unwrap()
        log.info("risk_score_persisted", score=assessment.score, risk_score_id=risk_score_id)

        outcome = EvaluationOutcome(
            patient_id=patient_id,
            state=EvaluationState.DONE,
            score=assessment.score,
            factors=assessment.factors,
            risk_score_id=risk_score_id,
        )

        decision = decide(assessment.score)
        if decision is None:
            return Result.ok(outcome)

        if self.config.suppress_duplicate_alerts:
            unread = await read_with_retry(
                "list_unread_alerts",
                lambda: self.store.list_unread_alerts(patient_id),
                self.config,
                log,
            )
            if unread.is_err():
                log.warning("unread_alert_lookup_failed", error=str(unread.unwrap_err()))
            elif should_suppress(decision, unread.unwrap()):
                log.info("alert_suppressed", severity=decision.severity.value)
                return Result.ok(
                    outcome.model_copy(
                        update={"alert_suppressed": True, "severity": decision.severity}
                    )
                )

        appended = await guarded(
            "append_alert",
            lambda: self.store.append_alert(patient_id, decision.message, decision.severity),
        )
        if appended.is_err():
            error = appended.unwrap_err()
            log.error(
                "alert_append_failed",
                state=EvaluationState.ALERTING.value,
                severity=decision.severity.value,
                risk_score_id=risk_score_id,
                error=str(error),
            )
            return Result.ok(
                outcome.model_copy(
                    update={"severity": decision.severity, "alert_error": str(error)}
                )
            )

        alert_id = appended.unwrap()
        log.info(
            "alert_raised",
            severity=decision.severity.value,
            score=assessment.score,
            alert_id=alert_id,
        )
        return Result.ok(
            outcome.model_copy(
                update={"alert_raised": True, "severity": decision.severity, "alert_id": alert_id}
            )
        )

    @staticmethod
    def _log_deferred_commit(log: Any, commit: asyncio.Future) -> None:
        """Record how a commit ended when nobody is left to receive its result."""
        if commit.cancelled():
            log.warning("deferred_commit_cancelled")
            return
        crash = commit.exception()
        if crash is not None:
            log.error(
                "deferred_commit_crashed", error_type=type(crash).__name__, error=str(crash)
            )
            return

        result = commit.result()
        if result.is_err():
            error = result.unwrap_err()
            log.error(
                "deferred_commit_failed", error_type=type(error).__name__, error=str(error)
            )
            return

        outcome = result.unwrap()
        log.info(
            "deferred_commit_completed",
            score=outcome.score,
            alert_raised=outcome.alert_raised,
            alert_error=outcome.alert_error,
        )

    @staticmethod
    def _fail(
        log: Any, state: EvaluationState, error: RiskWatchError, **context: Any
    ) -> Result[EvaluationOutcome, RiskWatchError]:
        log.error(
            "evaluation_failed",
            state=state.value,
            error_type=type(error).__name__,
            error=str(error),
            **context,
        )
        return Result.err(error)
