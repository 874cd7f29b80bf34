"""
Tests for configuration management in `riskwatch/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Engine, points and database settings read from the environment
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
- configure_logging for both renderers
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog
from pydantic import ValidationError

from riskwatch.config import (
    AppConfig,
    EngineConfig,
    LoggingConfig,
    PointsConfig,
    get_config,
    load_config_from_env,
)
from riskwatch.observability import configure_logging

ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "DATABASE_URL",
    "DATABASE_ECHO",
    "READ_RETRY_ATTEMPTS",
    "READ_RETRY_BACKOFF_SECONDS",
    "SUPPRESS_DUPLICATE_ALERTS",
    "TREND_WINDOW",
    "POINTS_READING_SUBMISSION",
    "POINTS_MEDICATION_ADHERENCE",
    "POINTS_TELEMEDICINE_REQUEST",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start each test from an empty environment and an empty get_config cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "dev")

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.logging.level == "INFO"
    assert config.engine.suppress_duplicate_alerts is False
    assert config.engine.trend_window == 30
    assert config.points == PointsConfig(
        reading_submission=5, medication_adherence=5, telemedicine_request=10
    )
    assert config.database.url == "sqlite:///./riskwatch.db"


def test_production_uses_json_logging_without_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")

    config = load_config_from_env()

    assert config.debug is False
    assert config.logging.format == "json"


def test_unknown_environment_falls_back_to_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "qa")
    assert load_config_from_env().environment == "production"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    assert load_config_from_env().logging.level == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert load_config_from_env().logging.level == "ERROR"


def test_engine_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("READ_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("READ_RETRY_BACKOFF_SECONDS", "0.25")
    monkeypatch.setenv("SUPPRESS_DUPLICATE_ALERTS", "yes")
    monkeypatch.setenv("TREND_WINDOW", "7")

    engine = load_config_from_env().engine

    assert engine.read_retry_attempts == 5
    assert engine.read_retry_backoff_seconds == 0.25
    assert engine.suppress_duplicate_alerts is True
    assert engine.trend_window == 7


def test_points_and_database_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POINTS_READING_SUBMISSION", "0")
    monkeypatch.setenv("POINTS_TELEMEDICINE_REQUEST", "25")
    monkeypatch.setenv("DATABASE_URL", "postgresql://db.internal/riskwatch")
    monkeypatch.setenv("DATABASE_ECHO", "true")

    config = load_config_from_env()

    assert config.points.reading_submission == 0
    assert config.points.medication_adherence == 5
    assert config.points.telemedicine_request == 25
    assert config.database.url == "postgresql://db.internal/riskwatch"
    assert config.database.echo is True


def test_invalid_values_fail_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("READ_RETRY_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        load_config_from_env()

    monkeypatch.setenv("READ_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("POINTS_MEDICATION_ADHERENCE", "-1")
    with pytest.raises(ValidationError):
        load_config_from_env()


def test_get_config_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True, engine=EngineConfig())


@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging_installs_renderer(fmt: str) -> None:
    configure_logging(LoggingConfig(level="DEBUG", format=fmt))  # type: ignore[arg-type]

    processors = structlog.get_config()["processors"]
    expected = (
        structlog.processors.JSONRenderer if fmt == "json" else structlog.dev.ConsoleRenderer
    )
    assert isinstance(processors[-1], expected)
    structlog.reset_defaults()
