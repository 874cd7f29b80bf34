"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class EngineConfig(BaseModel):
    """Risk evaluation engine behaviour."""

    read_retry_attempts: int = Field(
        default=3, ge=1, description="Attempts for store reads before the evaluation fails"
    )
    read_retry_backoff_seconds: float = Field(
        default=0.1, ge=0.0, description="Initial backoff between read attempts, doubled each retry"
    )
    max_backoff_seconds: float = Field(default=2.0, ge=0.0, description="Backoff ceiling")
    suppress_duplicate_alerts: bool = Field(
        default=False,
        description="Skip a new alert when an unread alert of equal or higher severity exists",
    )
    trend_window: int = Field(
        default=30, gt=0, description="Number of readings returned for the vitals trend"
    )


class PointsConfig(BaseModel):
    """Points awarded per qualifying patient action."""

    reading_submission: int = Field(default=5, ge=0)
    medication_adherence: int = Field(default=5, ge=0)
    telemedicine_request: int = Field(default=10, ge=0)


class DatabaseConfig(BaseModel):
    """Relational store configuration."""

    url: str = Field(default="sqlite:///./riskwatch.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Log emitted SQL")
    pool_size: int = Field(default=10, gt=0, description="Database connection pool size")
    max_overflow: int = Field(default=20, ge=0, description="Database connection pool overflow")
    pool_timeout: int = Field(default=30, gt=0, description="Database connection pool timeout")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    engine: EngineConfig = Field(default_factory=EngineConfig)
    points: PointsConfig = Field(default_factory=PointsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
    v = val.strip().upper()
    return cast(
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
    )


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    engine_config = EngineConfig(
        read_retry_attempts=int(os.getenv("READ_RETRY_ATTEMPTS", "3")),
        read_retry_backoff_seconds=float(os.getenv("READ_RETRY_BACKOFF_SECONDS", "0.1")),
        suppress_duplicate_alerts=_parse_bool(os.getenv("SUPPRESS_DUPLICATE_ALERTS"), False),
        trend_window=int(os.getenv("TREND_WINDOW", "30")),
    )

    points_config = PointsConfig(
        reading_submission=int(os.getenv("POINTS_READING_SUBMISSION", "5")),
        medication_adherence=int(os.getenv("POINTS_MEDICATION_ADHERENCE", "5")),
        telemedicine_request=int(os.getenv("POINTS_TELEMEDICINE_REQUEST", "10")),
    )

    database_config = DatabaseConfig(
        url=os.getenv("DATABASE_URL", "sqlite:///./riskwatch.db"),
        echo=_parse_bool(os.getenv("DATABASE_ECHO"), False),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        engine=engine_config,
        points=points_config,
        database=database_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
