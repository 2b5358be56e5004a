import threading
from unittest.mock import MagicMock

import pytest
import redis
from redis.exceptions import LockError

from allocatr.config.settings import Settings
from allocatr.engine.errors import AllocationBusy
from allocatr.engine.locking import (
    LocalEngineerLocks,
    NullEngineerLocks,
    RedisEngineerLocks,
    build_engineer_locks,
)


class TestLocalEngineerLocks:
    def test_same_engineer_shares_lock(self):
        locks = LocalEngineerLocks()
        assert locks._lock_for("eng-1") is locks._lock_for("eng-1")
        assert locks._lock_for("eng-1") is not locks._lock_for("eng-2")

    def test_busy_engineer_times_out(self):
        locks = LocalEngineerLocks(blocking_timeout_seconds=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("eng-1"):
                held.set()
                release.wait(timeout=2)

        t = threading.Thread(target=holder)
        t.start()
        held.wait(timeout=2)
        try:
            with pytest.raises(AllocationBusy):
                with locks.hold("eng-1"):
                    pass
            # A different engineer is unaffected
            with locks.hold("eng-2"):
                pass
        finally:
            release.set()
            t.join()

    def test_lock_released_after_error(self):
        locks = LocalEngineerLocks(blocking_timeout_seconds=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("eng-1"):
                raise RuntimeError("boom")
        with locks.hold("eng-1"):
            pass


class TestRedisEngineerLocks:
    def test_acquires_and_releases_named_lock(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = True
        locks = RedisEngineerLocks(client, timeout_seconds=7, blocking_timeout_seconds=3)

        with locks.hold("eng-1"):
            pass

        client.lock.assert_called_once_with("allocatr:engineer-lock:eng-1", timeout=7, blocking_timeout=3)
        client.lock.return_value.release.assert_called_once()

    def test_failed_acquire_raises_busy(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = False
        locks = RedisEngineerLocks(client)

        with pytest.raises(AllocationBusy):
            with locks.hold("eng-1"):
                pytest.fail("body must not run")
        client.lock.return_value.release.assert_not_called()

    def test_expired_lock_on_release_is_tolerated(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = True
        client.lock.return_value.release.side_effect = LockError("expired")

        with RedisEngineerLocks(client).hold("eng-1"):
            pass

    def test_health_check(self):
        client = MagicMock()
        assert RedisEngineerLocks(client).health_check() is True
        client.ping.side_effect = redis.ConnectionError("down")
        assert RedisEngineerLocks(client).health_check() is False


class TestBuildEngineerLocks:
    def test_backend_selection(self):
        assert isinstance(build_engineer_locks(Settings(lock_backend="none")), NullEngineerLocks)
        assert isinstance(build_engineer_locks(Settings(lock_backend="local")), LocalEngineerLocks)
        assert isinstance(
            build_engineer_locks(Settings(lock_backend="redis", redis_url="redis://localhost:6379/0")),
            RedisEngineerLocks,
        )
