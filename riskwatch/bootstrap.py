"""
Process entry point wiring.

The store handle is created and disposed here, never inside the engine or the
services; everything downstream receives it by injection.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from adapters.sql.store import SqlHealthStore
from riskwatch.config import AppConfig, get_config
from riskwatch.errors import RiskWatchError
from riskwatch.observability import configure_logging
from riskwatch.services.context import RequestContext, Role, resolve_context
from riskwatch.services.portal import (
    AlertAcknowledgementService,
    PatientDashboardService,
    PointsService,
    VitalsSubmissionService,
)
from riskwatch.services.risk_engine import RiskEvaluationEngine
from riskwatch.services.serialization import PatientSerializer
from riskwatch.services.stores import HealthStore, Result

logger = structlog.get_logger(__name__)


@dataclass
class Portal:
    """All services sharing one store handle and one patient serializer."""

    store: HealthStore
    engine: RiskEvaluationEngine
    submissions: VitalsSubmissionService
    acknowledgements: AlertAcknowledgementService
    points: PointsService
    dashboard: PatientDashboardService

    async def context_for(self, user_id: int, role: Role) -> Result[RequestContext, RiskWatchError]:
        return await resolve_context(self.store, user_id, role)


def build_portal(store: HealthStore, config: AppConfig) -> Portal:
    """Wire the services around an already-open store."""
    engine = RiskEvaluationEngine(store, config.engine, PatientSerializer())
    points = PointsService(store, config.points)
    return Portal(
        store=store,
        engine=engine,
        submissions=VitalsSubmissionService(store, engine, points),
        acknowledgements=AlertAcknowledgementService(store),
        points=points,
        dashboard=PatientDashboardService(store, config.engine),
    )


@asynccontextmanager
async def portal_session(config: AppConfig | None = None) -> AsyncIterator[Portal]:
    """
    Open the relational store, yield a wired portal, and dispose the store on exit.

    Schema creation is idempotent; migrations are out of scope.
    """
    config = config or get_config()
    configure_logging(config.logging)

    store = SqlHealthStore.from_config(config.database)
    await asyncio.to_thread(store.create_schema)
    logger.info("portal_session_started", environment=config.environment)

    try:
        yield build_portal(store, config)
    finally:
        await asyncio.to_thread(store.close)
        logger.info("portal_session_ended")
