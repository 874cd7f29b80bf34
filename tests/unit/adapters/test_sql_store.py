"""
Tests for the SQLAlchemy-backed store.

Each test gets its own SQLite file under ``tmp_path``; the schema is created
up front except where a missing schema is the point of the test.
"""

from collections.abc import Iterator
from pathlib import Path

import pytest

from adapters.sql.store import SqlHealthStore
from riskwatch.config import DatabaseConfig
from riskwatch.domain.models import ReadingSubmission, Severity
from riskwatch.errors import NotFound, StorageUnavailable


def _store_for(path: Path) -> SqlHealthStore:
    return SqlHealthStore.from_config(DatabaseConfig(url=f"sqlite:///{path}"))


@pytest.fixture
def sql_store(tmp_path: Path) -> Iterator[SqlHealthStore]:
    store = _store_for(tmp_path / "riskwatch.db")
    store.create_schema()
    yield store
    store.close()


async def test_register_patient_is_idempotent(sql_store: SqlHealthStore) -> None:
    first = (await sql_store.register_patient(1001)).unwrap()
    again = (await sql_store.register_patient(1001)).unwrap()
    other = (await sql_store.register_patient(1002)).unwrap()

    assert first == again
    assert other != first
    assert (await sql_store.resolve_patient_id(1001)).unwrap() == first


async def test_unknown_user_is_not_found(sql_store: SqlHealthStore) -> None:
    result = await sql_store.resolve_patient_id(4242)
    assert isinstance(result.unwrap_err(), NotFound)


async def test_readings_round_trip_newest_first(sql_store: SqlHealthStore) -> None:
    patient_id = (await sql_store.register_patient(1)).unwrap()
    assert (await sql_store.get_latest_reading(patient_id)).unwrap() is None

    for heart_rate in (61.0, 62.0, 63.0):
        await sql_store.append_reading(
            patient_id,
            ReadingSubmission(blood_pressure="130/85", heart_rate=heart_rate, notes="after walk"),
        )

    latest = (await sql_store.get_latest_reading(patient_id)).unwrap()
    recent = (await sql_store.list_recent_readings(patient_id, 2)).unwrap()

    assert latest is not None
    assert latest.heart_rate == 63.0
    assert latest.blood_pressure == "130/85"
    assert latest.notes == "after walk"
    assert latest.recorded_at.tzinfo is not None
    assert [r.heart_rate for r in recent] == [63.0, 62.0]


async def test_current_risk_score_is_the_latest_append(sql_store: SqlHealthStore) -> None:
    patient_id = (await sql_store.register_patient(1)).unwrap()
    assert (await sql_store.get_current_risk_score(patient_id)).unwrap() is None

    await sql_store.append_risk_score(patient_id, 80, {"blood_pressure": 30, "heart_rate": 20})
    await sql_store.append_risk_score(patient_id, 10, {"blood_sugar": 10})

    current = (await sql_store.get_current_risk_score(patient_id)).unwrap()

    assert current is not None
    assert current.score == 10
    assert current.factors == {"blood_sugar": 10}


async def test_alerts_and_scoped_mark_read(sql_store: SqlHealthStore) -> None:
    owner = (await sql_store.register_patient(1)).unwrap()
    other = (await sql_store.register_patient(2)).unwrap()
    first = (await sql_store.append_alert(owner, "moderate", Severity.MEDIUM)).unwrap()
    second = (await sql_store.append_alert(owner, "high", Severity.HIGH)).unwrap()

    alerts = (await sql_store.list_alerts(owner)).unwrap()
    assert [a.id for a in alerts] == [second, first]
    assert alerts[0].severity is Severity.HIGH
    assert not any(a.is_read for a in alerts)

    assert (await sql_store.mark_alert_read(first, other)).unwrap() is False
    assert (await sql_store.mark_alert_read(first, owner)).unwrap() is True
    assert (await sql_store.mark_alert_read(first, owner)).unwrap() is True

    unread = (await sql_store.list_unread_alerts(owner)).unwrap()
    assert [a.id for a in unread] == [second]


async def test_points_ledger_sums(sql_store: SqlHealthStore) -> None:
    patient_id = (await sql_store.register_patient(1)).unwrap()
    assert (await sql_store.get_total_points(patient_id)).unwrap() == 0

    await sql_store.append_points_award(patient_id, 5, "Vitals submission")
    await sql_store.append_points_award(patient_id, 10, "Telemedicine request submission")

    awards = (await sql_store.list_points_awards(patient_id)).unwrap()
    assert (await sql_store.get_total_points(patient_id)).unwrap() == 15
    assert sorted(a.points for a in awards) == [5, 10]


async def test_in_memory_url_shares_one_database() -> None:
    store = SqlHealthStore.from_config(DatabaseConfig(url="sqlite:///:memory:"))
    store.create_schema()
    try:
        patient_id = (await store.register_patient(7)).unwrap()
        assert (await store.resolve_patient_id(7)).unwrap() == patient_id
    finally:
        store.close()


async def test_missing_schema_is_storage_unavailable(tmp_path: Path) -> None:
    store = _store_for(tmp_path / "empty.db")
    try:
        result = await store.get_latest_reading(1)
    finally:
        store.close()

    error = result.unwrap_err()
    assert isinstance(error, StorageUnavailable)
    assert error.operation == "get_latest_reading"
