"""Shared fixtures for the unit tests."""

from collections.abc import Callable

import pytest

from adapters.memory.store import InMemoryHealthStore
from riskwatch.config import EngineConfig
from riskwatch.domain.models import Reading
from riskwatch.services.risk_engine import RiskEvaluationEngine

ReadingFactory = Callable[..., Reading]


@pytest.fixture
def make_reading() -> ReadingFactory:
    """Builds readings with normal vitals unless overridden."""

    def _make(
        blood_pressure: str | None = "118/76",
        heart_rate: float | None = 72,
        blood_sugar: float | None = 95,
        oxygen_level: float | None = 98,
        patient_id: int = 1,
    ) -> Reading:
        return Reading(
            patient_id=patient_id,
            blood_pressure=blood_pressure,
            heart_rate=heart_rate,
            blood_sugar=blood_sugar,
            oxygen_level=oxygen_level,
        )

    return _make


@pytest.fixture
def engine_config() -> EngineConfig:
    """No real backoff delays in tests."""
    return EngineConfig(read_retry_attempts=3, read_retry_backoff_seconds=0.0)


@pytest.fixture
def store() -> InMemoryHealthStore:
    return InMemoryHealthStore()


@pytest.fixture
def engine(store: InMemoryHealthStore, engine_config: EngineConfig) -> RiskEvaluationEngine:
    return RiskEvaluationEngine(store, engine_config)
