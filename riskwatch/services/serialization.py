"""
Per-patient serialization of evaluations.

One FIFO ``asyncio.Lock`` per patient; different patients never contend.
Registry entries are reference counted and dropped once no task holds or
waits on them, so the registry does not grow with the patient population.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger(__name__)


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class PatientSerializer:
    """Hands out per-key locks that admit waiters in arrival order."""

    def __init__(self) -> None:
        self._slots: dict[Hashable, _Slot] = {}
        self.logger = logger.bind(component="patient_serializer")

    @asynccontextmanager
    async def hold(self, patient_id: Hashable) -> AsyncIterator[None]:
        """Hold the patient's lock for the duration of the block."""
        slot = self._slots.get(patient_id)
        if slot is None:
            slot = self._slots[patient_id] = _Slot()
        slot.users += 1

        try:
            if slot.lock.locked():
                self.logger.debug("patient_lock_contended", patient_id=patient_id)
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[patient_id]

    def is_held(self, patient_id: Hashable) -> bool:
        slot = self._slots.get(patient_id)
        return slot is not None and slot.lock.locked()

    def __len__(self) -> int:
        return len(self._slots)
