import asyncio
from uuid import uuid4

import pytest
from redis.exceptions import LockError

from app.core.exceptions import StoreFailure
from app.core.locks import DoctorLocks, LocalDoctorLocks, RedisDoctorLocks


class FakeLock:
    """Behaves like a redis.asyncio Lock for the outcomes under test."""

    def __init__(self, acquired=True, acquire_error=None, release_error=None):
        self.acquired = acquired
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.released = False

    async def acquire(self):
        if self.acquire_error:
            raise self.acquire_error
        return self.acquired

    async def release(self):
        self.released = True
        if self.release_error:
            raise self.release_error


class FakeRedisClient:
    def __init__(self, lock: FakeLock):
        self._lock = lock
        self.requested = []

    def lock(self, name, timeout, blocking_timeout):
        self.requested.append((name, timeout, blocking_timeout))
        return self._lock


@pytest.mark.asyncio
async def test_redis_lock_is_keyed_by_doctor_and_released():
    doctor_id = uuid4()
    lock = FakeLock()
    client = FakeRedisClient(lock)
    ran = []

    async with RedisDoctorLocks(client, timeout=30, blocking_timeout=5).hold(doctor_id):
        ran.append(True)

    assert ran == [True]
    assert client.requested == [(f"lock:doctor:{doctor_id}", 30, 5)]
    assert lock.released


@pytest.mark.asyncio
async def test_redis_lock_timeout_is_a_store_failure():
    lock = FakeLock(acquired=False)
    ran = []

    with pytest.raises(StoreFailure) as exc:
        async with RedisDoctorLocks(FakeRedisClient(lock), timeout=30, blocking_timeout=0.1).hold(uuid4()):
            ran.append(True)

    assert exc.value.status_code == 500
    assert exc.value.detail == "Schedule is busy, try again"
    assert ran == []
    assert not lock.released


@pytest.mark.asyncio
async def test_redis_lock_error_on_acquire_is_a_store_failure():
    lock = FakeLock(acquire_error=LockError("connection lost"))

    with pytest.raises(StoreFailure):
        async with RedisDoctorLocks(FakeRedisClient(lock), timeout=30, blocking_timeout=5).hold(uuid4()):
            pass


@pytest.mark.asyncio
async def test_redis_lock_expired_before_release_keeps_the_result():
    lock = FakeLock(release_error=LockError("Cannot release a lock that's no longer owned"))
    ran = []

    async with RedisDoctorLocks(FakeRedisClient(lock), timeout=30, blocking_timeout=5).hold(uuid4()):
        ran.append(True)

    assert ran == [True]
    assert lock.released


@pytest.mark.asyncio
async def test_redis_lock_is_released_when_the_body_fails():
    lock = FakeLock()

    with pytest.raises(RuntimeError):
        async with RedisDoctorLocks(FakeRedisClient(lock), timeout=30, blocking_timeout=5).hold(uuid4()):
            raise RuntimeError("boom")

    assert lock.released


@pytest.mark.asyncio
async def test_local_locks_serialize_one_doctor_only():
    locks = LocalDoctorLocks()
    doctor_id, other_id = uuid4(), uuid4()
    order = []

    async def hold(key, label):
        async with locks.hold(key):
            order.append(f"{label} in")
            await asyncio.sleep(0.01)
            order.append(f"{label} out")

    await asyncio.gather(hold(doctor_id, "a"), hold(doctor_id, "b"), hold(other_id, "c"))

    assert order.index("a out") < order.index("b in")
    assert order.index("c in") < order.index("a out")


def test_lock_backends_must_implement_hold():
    class Incomplete(DoctorLocks):
        pass

    with pytest.raises(TypeError):
        DoctorLocks()
    with pytest.raises(TypeError):
        Incomplete()
