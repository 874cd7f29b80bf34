"""
Relational store backed by SQLAlchemy.

The ORM runs synchronously; each store call executes in a worker thread via
``asyncio.to_thread`` so the event loop never blocks on the database. Every
call opens its own short session and commits before returning.
"""

import asyncio
import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

import structlog
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from riskwatch.config import DatabaseConfig
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

Base = declarative_base()

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _aware(ts: datetime | None) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if ts is None:
        return _utcnow()
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


class PatientRow(Base):
    __tablename__ = "patients"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, unique=True, index=True, nullable=False)


class ReadingRow(Base):
    __tablename__ = "readings"
    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    blood_pressure = Column(String(20), nullable=True)
    heart_rate = Column(Float, nullable=True)
    blood_sugar = Column(Float, nullable=True)
    oxygen_level = Column(Float, nullable=True)
    notes = Column(String(500), nullable=True)
    recorded_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)

    def to_model(self) -> Reading:
        return Reading(
            id=self.id,
            patient_id=self.patient_id,
            blood_pressure=self.blood_pressure,
            heart_rate=self.heart_rate,
            blood_sugar=self.blood_sugar,
            oxygen_level=self.oxygen_level,
            notes=self.notes,
            recorded_at=_aware(self.recorded_at),
        )


class RiskScoreRow(Base):
    __tablename__ = "risk_scores"
    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    score = Column(Integer, nullable=False)
    factors_json = Column(Text, nullable=False, default="{}")
    computed_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)

    def to_model(self) -> RiskScore:
        return RiskScore(
            id=self.id,
            patient_id=self.patient_id,
            score=self.score,
            factors=json.loads(self.factors_json or "{}"),
            computed_at=_aware(self.computed_at),
        )


class AlertRow(Base):
    __tablename__ = "alerts"
    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    message = Column(String(500), nullable=False)
    severity = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    def to_model(self) -> Alert:
        return Alert(
            id=self.id,
            patient_id=self.patient_id,
            message=self.message,
            severity=Severity(self.severity),
            created_at=_aware(self.created_at),
            is_read=bool(self.is_read),
        )


class PointsAwardRow(Base):
    __tablename__ = "points_awards"
    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    points = Column(Integer, nullable=False)
    reason = Column(String(200), nullable=False)
    awarded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_model(self) -> PointsAward:
        return PointsAward(
            id=self.id,
            patient_id=self.patient_id,
            points=self.points,
            reason=self.reason,
            awarded_at=_aware(self.awarded_at),
        )


def create_db_engine(config: DatabaseConfig) -> Engine:
    """Create an engine with pool settings appropriate to the backend."""
    url = make_url(config.url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each worker thread sees its own empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(config.url, echo=config.echo, **kwargs)

    return create_engine(
        config.url,
        echo=config.echo,
        pool_pre_ping=True,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
    )


class SqlHealthStore:
    """Implements every store protocol against one SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self.logger = logger.bind(component="sql_store", backend=engine.url.get_backend_name())

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SqlHealthStore":
        return cls(create_db_engine(config))

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    async def _run(self, operation: str, work: Callable[[Session], T]) -> Result[T, Exception]:
        def _in_session() -> T:
            with self._session_factory() as session, session.begin():
                return work(session)

        try:
            return Result.ok(await asyncio.to_thread(_in_session))
        except SQLAlchemyError as e:
            self.logger.error("store_operation_failed", operation=operation, error=str(e))
            return Result.err(StorageUnavailable(operation, e))

    async def register_patient(self, user_id: int) -> Result[int, Exception]:
        """Create (or return) the patient record for a user."""

        def work(session: Session) -> int:
            existing = session.scalar(select(PatientRow.id).where(PatientRow.user_id == user_id))
            if existing is not None:
                return existing
            row = PatientRow(user_id=user_id)
            session.add(row)
            session.flush()
            return row.id

        return await self._run("register_patient", work)

    # IdentityResolver

    async def resolve_patient_id(self, user_id: int) -> Result[int, Exception]:
        found = await self._run(
            "resolve_patient_id",
            lambda s: s.scalar(select(PatientRow.id).where(PatientRow.user_id == user_id)),
        )
        if found.is_ok() and found.unwrap() is None:
            return Result.err(NotFound(f"No patient record for user {user_id}"))
        return found

    # VitalsStore

    async def append_reading(
        self, patient_id: int, submission: ReadingSubmission
    ) -> Result[int, Exception]:
        def work(session: Session) -> int:
            row = ReadingRow(patient_id=patient_id, **submission.model_dump())
            session.add(row)
            session.flush()
            return row.id

        return await self._run("append_reading", work)

    async def get_latest_reading(self, patient_id: int) -> Result[Reading | None, Exception]:
        def work(session: Session) -> Reading | None:
            row = session.scalars(
                select(ReadingRow)
                .where(ReadingRow.patient_id == patient_id)
                .order_by(ReadingRow.recorded_at.desc(), ReadingRow.id.desc())
                .limit(1)
            ).first()
            return row.to_model() if row is not None else None

        return await self._run("get_latest_reading", work)

    async def list_recent_readings(
        self, patient_id: int, limit: int
    ) -> Result[list[Reading], Exception]:
        def work(session: Session) -> list[Reading]:
            rows = session.scalars(
                select(ReadingRow)
                .where(ReadingRow.patient_id == patient_id)
                .order_by(ReadingRow.recorded_at.desc(), ReadingRow.id.desc())
                .limit(limit)
            )
            return [row.to_model() for row in rows]

        return await self._run("list_recent_readings", work)

    # RiskScoreStore

    async def append_risk_score(
        self, patient_id: int, score: int, factors: dict[str, int]
    ) -> Result[int, Exception]:
        def work(session: Session) -> int:
            row = RiskScoreRow(patient_id=patient_id, score=score, factors_json=json.dumps(factors))
            session.add(row)
            session.flush()
            return row.id

        return await self._run("append_risk_score", work)

    async def get_current_risk_score(self, patient_id: int) -> Result[RiskScore | None, Exception]:
        def work(session: Session) -> RiskScore | None:
            row = session.scalars(
                select(RiskScoreRow)
                .where(RiskScoreRow.patient_id == patient_id)
                .order_by(RiskScoreRow.computed_at.desc(), RiskScoreRow.id.desc())
                .limit(1)
            ).first()
            return row.to_model() if row is not None else None

        return await self._run("get_current_risk_score", work)

    # AlertStore

    async def append_alert(
        self, patient_id: int, message: str, severity: Severity
    ) -> Result[int, Exception]:
        def work(session: Session) -> int:
            row = AlertRow(patient_id=patient_id, message=message, severity=severity.value)
            session.add(row)
            session.flush()
            return row.id

        return await self._run("append_alert", work)

    async def list_alerts(self, patient_id: int) -> Result[list[Alert], Exception]:
        def work(session: Session) -> list[Alert]:
            rows = session.scalars(
                select(AlertRow)
                .where(AlertRow.patient_id == patient_id)
                .order_by(AlertRow.created_at.desc(), AlertRow.id.desc())
            )
            return [row.to_model() for row in rows]

        return await self._run("list_alerts", work)

    async def list_unread_alerts(self, patient_id: int) -> Result[list[Alert], Exception]:
        def work(session: Session) -> list[Alert]:
            rows = session.scalars(
                select(AlertRow).where(
                    AlertRow.patient_id == patient_id, AlertRow.is_read.is_(False)
                )
            )
            return [row.to_model() for row in rows]

        return await self._run("list_unread_alerts", work)

    async def mark_alert_read(self, alert_id: int, patient_id: int) -> Result[bool, Exception]:
        def work(session: Session) -> bool:
            result = session.execute(
                update(AlertRow)
                .where(AlertRow.id == alert_id, AlertRow.patient_id == patient_id)
                .values(is_read=True)
            )
            return result.rowcount > 0

        return await self._run("mark_alert_read", work)

    # PointsLedger

    async def append_points_award(
        self, patient_id: int, points: int, reason: str
    ) -> Result[int, Exception]:
        def work(session: Session) -> int:
            row = PointsAwardRow(patient_id=patient_id, points=points, reason=reason)
            session.add(row)
            session.flush()
            return row.id

        return await self._run("append_points_award", work)

    async def get_total_points(self, patient_id: int) -> Result[int, Exception]:
        def work(session: Session) -> int:
            total = session.scalar(
                select(func.coalesce(func.sum(PointsAwardRow.points), 0)).where(
                    PointsAwardRow.patient_id == patient_id
                )
            )
            return int(total or 0)

        return await self._run("get_total_points", work)

    async def list_points_awards(self, patient_id: int) -> Result[list[PointsAward], Exception]:
        def work(session: Session) -> list[PointsAward]:
            rows = session.scalars(
                select(PointsAwardRow)
                .where(PointsAwardRow.patient_id == patient_id)
                .order_by(PointsAwardRow.awarded_at.desc(), PointsAwardRow.id.desc())
            )
            return [row.to_model() for row in rows]

        return await self._run("list_points_awards", work)
