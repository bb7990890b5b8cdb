import uuid

import redis
from redis.exceptions import LockNotOwnedError

from counselbook.run_guard import LOCK_PREFIX, RunGuard


class FakeLock:
    """redis-py Lock semantics: SET NX with expiry, release only by the owning token"""

    def __init__(self, server, name, timeout=None, blocking=True):
        self.server = server
        self.name = name
        self.timeout = timeout
        self.blocking = blocking
        self.token = None

    def acquire(self):
        if self.server.fail:
            raise redis.ConnectionError("redis down")
        if self.name in self.server.store:
            return False
        self.token = uuid.uuid4().hex
        self.server.store[self.name] = self.token
        self.server.expiries[self.name] = self.timeout
        return True

    def release(self):
        if self.server.store.get(self.name) != self.token:
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        del self.server.store[self.name]


class FakeRedis:
    def __init__(self, fail=False):
        self.store = {}
        self.expiries = {}
        self.fail = fail
        self.locks = []

    def lock(self, name, timeout=None, blocking=True):
        lock = FakeLock(self, name, timeout=timeout, blocking=blocking)
        self.locks.append(lock)
        return lock


def test_in_process_guard_refuses_overlapping_run():
    guard = RunGuard()

    with guard.hold("reminders") as outer:
        with guard.hold("reminders") as inner:
            assert outer is True
            assert inner is False
        with guard.hold("auto_online") as other:
            assert other is True

    with guard.hold("reminders") as again:
        assert again is True


def test_redis_guard_takes_non_blocking_lock_with_expiry():
    client = FakeRedis()
    guard = RunGuard(client, ttl=120)

    with guard.hold("reminders") as acquired:
        assert acquired is True
        assert client.expiries[f"{LOCK_PREFIX}reminders"] == 120
        assert client.locks[0].blocking is False
        with RunGuard(client).hold("reminders") as competing:
            assert competing is False

    assert client.store == {}


def test_redis_guard_keeps_lock_taken_over_by_another_holder():
    client = FakeRedis()
    guard = RunGuard(client)

    with guard.hold("reminders") as acquired:
        assert acquired is True
        # Lock expired and was re-acquired elsewhere
        client.store[f"{LOCK_PREFIX}reminders"] = "someone-else"

    assert client.store[f"{LOCK_PREFIX}reminders"] == "someone-else"


def test_unreachable_redis_falls_back_to_local_lock():
    guard = RunGuard(FakeRedis(fail=True))

    with guard.hold("reminders") as outer:
        with guard.hold("reminders") as inner:
            assert outer is True
            assert inner is False
