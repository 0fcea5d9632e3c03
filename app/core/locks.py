import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
from uuid import UUID

from redis.exceptions import LockError

from app.core.exceptions import StoreFailure
from app.core.logger import logger
from app.core.redis import RedisClient


class DoctorLocks(ABC):
    """
    Mutual exclusion keyed by doctor.

    Everything that rewrites a doctor's slots or books one of them runs inside
    ``hold(doctor_id)``, so a regeneration can never wipe a booking that is
    being made at the same moment. Different doctors never contend.
    """

    @abstractmethod
    def hold(self, doctor_id: UUID):
        """Async context manager that holds the doctor's lock."""


class LocalDoctorLocks(DoctorLocks):
    """In-process locks, enough for a single worker."""

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, doctor_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(doctor_id)
        if lock is None:
            lock = self._locks[doctor_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, doctor_id: UUID) -> AsyncIterator[None]:
        async with self._lock_for(doctor_id):
            yield


class RedisDoctorLocks(DoctorLocks):
    """Locks shared by every worker through redis."""

    def __init__(self, client: RedisClient, timeout: float, blocking_timeout: float):
        self.client = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, doctor_id: UUID) -> AsyncIterator[None]:
        lock = self.client.lock(
            f"lock:doctor:{doctor_id}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except LockError as e:
            logger.error(f"Lock error for doctor {doctor_id}: {e}")
            raise StoreFailure("Could not acquire schedule lock")
        if not acquired:
            logger.warning(f"Timed out waiting for schedule lock of doctor {doctor_id}")
            raise StoreFailure("Schedule is busy, try again")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired while held; the work already finished.
                logger.warning(f"Schedule lock for doctor {doctor_id} expired before release: {e}")
