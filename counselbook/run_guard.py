"""
Mutual exclusion for periodic batch runs
Redis locks (redis-py Lock) shared across processes when Redis is configured,
in-process locks otherwise
"""

import logging
import os
from contextlib import contextmanager
from threading import Lock
from typing import Optional

import redis
from redis.exceptions import LockNotOwnedError

from .config import REDIS_HOST, REDIS_URL, RUN_GUARD_TTL_SECONDS

logger = logging.getLogger(__name__)

LOCK_PREFIX = "counselbook:run-guard:"

# Redis connection
redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both a REDIS_URL and individual REDIS_HOST/PORT/PASSWORD settings
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for run guard...")

        if REDIS_URL:
            # Mask password in URL for logging
            if "@" in REDIS_URL:
                url_parts = REDIS_URL.split("@")
                protocol = url_parts[0].split(":")[0]
                masked_url = f"{protocol}:****@{url_parts[1]}"
            else:
                masked_url = "****"
            logger.info(f"📡 Using Redis URL connection: {masked_url}")

            client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        else:
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"
            logger.info(f"📡 Using Redis at {REDIS_HOST}:{redis_port} ({'SSL' if redis_ssl else 'no SSL'})")

            client = redis.Redis(
                host=REDIS_HOST or "localhost",
                port=redis_port,
                password=os.getenv("REDIS_PASSWORD", None),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=redis_ssl,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
            )

        client.ping()
        logger.info("✅ Redis connected for run guard")
        redis_client = client

    return redis_client


class RunGuard:
    """
    Refuses a batch run while another run with the same name holds the lock.

    Usage:
        with guard.hold("reminders") as acquired:
            if not acquired:
                return {"skipped": True}
            ...

    Redis locks expire after ``ttl`` seconds so a crashed run cannot block
    later ones forever.
    """

    def __init__(self, client: Optional[redis.Redis] = None, ttl: int = RUN_GUARD_TTL_SECONDS):
        self.client = client
        self.ttl = ttl
        self._local_locks: dict[str, Lock] = {}
        self._registry_lock = Lock()

    @property
    def distributed(self) -> bool:
        return self.client is not None

    def _local_lock(self, name: str) -> Lock:
        with self._registry_lock:
            return self._local_locks.setdefault(name, Lock())

    def _acquire_redis(self, key: str):
        """
        Try the Redis lock for ``key``.

        Returns ``(lock, acquired)``; ``lock`` is None when Redis is unreachable.
        """
        lock = self.client.lock(key, timeout=self.ttl, blocking=False)
        try:
            return lock, lock.acquire()
        except redis.RedisError as e:
            logger.warning(f"⚠️ Run guard Redis error, falling back to in-process lock: {e}")
            return None, False

    def _release_redis(self, lock) -> None:
        # release() compares the token and deletes in one Lua script
        try:
            lock.release()
        except LockNotOwnedError:
            logger.warning(f"⚠️ Run guard {lock.name} expired before the run finished")
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to release run guard {lock.name}: {e}")

    @contextmanager
    def hold(self, name: str):
        if self.client is not None:
            lock, acquired = self._acquire_redis(f"{LOCK_PREFIX}{name}")
            if lock is not None:
                if not acquired:
                    logger.info(f"⏭️ {name} run already in progress, skipping")
                try:
                    yield acquired
                finally:
                    if acquired:
                        self._release_redis(lock)
                return

        lock = self._local_lock(name)
        acquired = lock.acquire(blocking=False)
        if not acquired:
            logger.info(f"⏭️ {name} run already in progress, skipping")
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()


_default_guard: Optional[RunGuard] = None


def get_run_guard() -> RunGuard:
    """Process-wide guard; uses Redis when REDIS_URL or REDIS_HOST is configured and reachable"""
    global _default_guard

    if _default_guard is None:
        client = None
        if REDIS_URL or REDIS_HOST:
            try:
                client = get_redis_client()
            except Exception as e:
                logger.error(f"❌ Failed to connect to Redis: {e}")
                logger.warning("⚠️ Run guard falls back to in-process locks (no cross-process exclusion)")
        _default_guard = RunGuard(client)

    return _default_guard
