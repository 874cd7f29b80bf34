"""Tests for per-patient lock handout."""

import asyncio

from riskwatch.services.serialization import PatientSerializer


async def test_same_patient_is_admitted_in_arrival_order() -> None:
    serializer = PatientSerializer()
    events: list[tuple[str, int]] = []

    async def worker(i: int) -> None:
        async with serializer.hold(7):
            events.append(("start", i))
            await asyncio.sleep(0.01)
            events.append(("end", i))

    await asyncio.gather(*(worker(i) for i in range(3)))

    assert events == [
        ("start", 0),
        ("end", 0),
        ("start", 1),
        ("end", 1),
        ("start", 2),
        ("end", 2),
    ]


async def test_different_patients_do_not_wait_on_each_other() -> None:
    serializer = PatientSerializer()
    release = asyncio.Event()

    async def hold_patient_one() -> None:
        async with serializer.hold(1):
            await release.wait()

    blocker = asyncio.create_task(hold_patient_one())
    await asyncio.sleep(0)
    assert serializer.is_held(1)

    async with serializer.hold(2):
        assert serializer.is_held(2)

    release.set()
    await blocker


async def test_registry_is_emptied_when_idle() -> None:
    serializer = PatientSerializer()

    async with serializer.hold(1):
        async with serializer.hold(2):
            assert len(serializer) == 2

    assert len(serializer) == 0
    assert not serializer.is_held(1)


async def test_lock_released_when_body_raises() -> None:
    serializer = PatientSerializer()

    try:
        async with serializer.hold(3):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(serializer) == 0
    async with serializer.hold(3):
        assert serializer.is_held(3)
