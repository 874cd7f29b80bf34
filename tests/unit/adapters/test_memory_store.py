"""Tests for the in-process store used by the demo and the service tests."""

from adapters.memory.store import InMemoryHealthStore
from riskwatch.domain.models import ReadingSubmission, Severity
from riskwatch.errors import NotFound, StorageUnavailable


async def test_outage_for_a_number_of_calls_then_recovers(store: InMemoryHealthStore) -> None:
    store.simulate_outage("get_latest_reading", times=2)

    first = await store.get_latest_reading(1)
    second = await store.get_latest_reading(1)
    third = await store.get_latest_reading(1)

    assert isinstance(first.unwrap_err(), StorageUnavailable)
    assert first.unwrap_err().operation == "get_latest_reading"
    assert isinstance(second.unwrap_err(), StorageUnavailable)
    assert third.is_ok() and third.unwrap() is None
    assert store.calls["get_latest_reading"] == 3


async def test_open_ended_outage_lasts_until_cleared(store: InMemoryHealthStore) -> None:
    store.simulate_outage("append_alert")
    for _ in range(3):
        assert (await store.append_alert(1, "m", Severity.HIGH)).is_err()

    store.clear_outages()
    assert (await store.append_alert(1, "m", Severity.HIGH)).is_ok()


async def test_outage_is_scoped_to_one_operation(store: InMemoryHealthStore) -> None:
    store.simulate_outage("append_alert")
    assert (await store.append_risk_score(1, 10, {"heart_rate": 10})).is_ok()


async def test_resolve_patient_id(store: InMemoryHealthStore) -> None:
    patient_id = store.register_patient(300)

    assert (await store.resolve_patient_id(300)).unwrap() == patient_id
    assert isinstance((await store.resolve_patient_id(301)).unwrap_err(), NotFound)


async def test_recent_readings_newest_first_and_limited(store: InMemoryHealthStore) -> None:
    for heart_rate in (60, 70, 80):
        await store.append_reading(
            4, ReadingSubmission(blood_pressure="120/80", heart_rate=heart_rate)
        )

    recent = (await store.list_recent_readings(4, 2)).unwrap()
    latest = (await store.get_latest_reading(4)).unwrap()

    assert [r.heart_rate for r in recent] == [80, 70]
    assert latest is not None and latest.heart_rate == 80


async def test_mark_alert_read_is_scoped_to_owner(store: InMemoryHealthStore) -> None:
    alert_id = (await store.append_alert(1, "m", Severity.MEDIUM)).unwrap()

    assert (await store.mark_alert_read(alert_id, 2)).unwrap() is False
    assert (await store.list_unread_alerts(1)).unwrap()[0].id == alert_id

    assert (await store.mark_alert_read(alert_id, 1)).unwrap() is True
    assert (await store.mark_alert_read(alert_id, 1)).unwrap() is True
    assert (await store.list_unread_alerts(1)).unwrap() == []


async def test_points_totals_per_patient(store: InMemoryHealthStore) -> None:
    await store.append_points_award(1, 5, "Vitals submission")
    await store.append_points_award(1, 10, "Telemedicine request submission")
    await store.append_points_award(2, 5, "Vitals submission")

    assert (await store.get_total_points(1)).unwrap() == 15
    assert (await store.get_total_points(2)).unwrap() == 5
    assert (await store.get_total_points(3)).unwrap() == 0
