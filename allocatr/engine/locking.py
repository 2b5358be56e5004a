"""
Per-engineer critical sections for the read-validate-write sequence.

Two concurrent writes for the same engineer can each read a snapshot that
is valid on its own and jointly over-allocate the engineer. Holding the
engineer's lock from the snapshot read until the commit closes that gap.

Backends:
- none:  no serialization at all
- local: one threading.Lock per engineer, single process only
- redis: redis-py distributed lock, shared by every worker on the same Redis
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from typing import Dict, Iterator

import redis
from redis.exceptions import LockError

from allocatr.config.settings import Settings
from allocatr.engine.errors import AllocationBusy

logger = logging.getLogger(__name__)


class EngineerLocks(ABC):
    @abstractmethod
    def hold(self, engineer_id: str):
        """Context manager guarding all allocation writes for one engineer."""


class NullEngineerLocks(EngineerLocks):
    def hold(self, engineer_id: str):
        return nullcontext()


class LocalEngineerLocks(EngineerLocks):
    def __init__(self, blocking_timeout_seconds: float = 5):
        self.blocking_timeout_seconds = blocking_timeout_seconds
        # One entry per engineer id seen, so bounded by the number of engineers
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, engineer_id: str) -> threading.Lock:
        with self._guard:
            if engineer_id not in self._locks:
                self._locks[engineer_id] = threading.Lock()
            return self._locks[engineer_id]

    @contextmanager
    def hold(self, engineer_id: str) -> Iterator[None]:
        lock = self._lock_for(engineer_id)
        if not lock.acquire(timeout=self.blocking_timeout_seconds):
            logger.warning(f"Timed out waiting for allocation lock on engineer {engineer_id}")
            raise AllocationBusy(engineer_id)
        try:
            yield
        finally:
            lock.release()


class RedisEngineerLocks(EngineerLocks):
    def __init__(self, redis_client, timeout_seconds: float = 10, blocking_timeout_seconds: float = 5):
        self.redis_client = redis_client
        self.timeout_seconds = timeout_seconds
        self.blocking_timeout_seconds = blocking_timeout_seconds

    @staticmethod
    def key(engineer_id: str) -> str:
        return f"allocatr:engineer-lock:{engineer_id}"

    @contextmanager
    def hold(self, engineer_id: str) -> Iterator[None]:
        lock = self.redis_client.lock(
            self.key(engineer_id),
            timeout=self.timeout_seconds,
            blocking_timeout=self.blocking_timeout_seconds,
        )
        if not lock.acquire():
            logger.warning(f"Timed out waiting for allocation lock on engineer {engineer_id}")
            raise AllocationBusy(engineer_id)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Expired before release; the write already committed
                logger.warning(f"Allocation lock on engineer {engineer_id} expired before release")

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False


def build_engineer_locks(settings: Settings) -> EngineerLocks:
    if settings.lock_backend == "redis":
        return RedisEngineerLocks(
            redis.from_url(settings.redis_url, decode_responses=True),
            timeout_seconds=settings.lock_timeout_seconds,
            blocking_timeout_seconds=settings.lock_blocking_timeout_seconds,
        )
    if settings.lock_backend == "local":
        return LocalEngineerLocks(blocking_timeout_seconds=settings.lock_blocking_timeout_seconds)
    return NullEngineerLocks()
