"""
Redis-backed mutex for scheduled jobs.

Keeps two beat-triggered sweeps from running at the same time. The lock
fails open: if Redis is unreachable the job runs anyway, and correctness
rests on the conditional status updates inside the sweep.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(job_name: str) -> str:
    return f"{settings.job_lock_namespace}:lock:job:{job_name}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("job_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_job_lock(job_name: str, ttl_s: int = 600) -> bool:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_job_lock("acquire", "redis_unavailable")
        return True
    try:
        acquired = bool(client.set(_lock_key(job_name), str(time.time()), nx=True, ex=ttl_s))
    except Exception as exc:
        prometheus_metrics.record_job_lock("acquire", "error")
        logger.warning(
            "job_lock_acquire_failed",
            extra={"job_name": job_name, "error": str(exc), "error_type": type(exc).__name__},
        )
        return True
    prometheus_metrics.record_job_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_job_lock(job_name: str) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_lock_key(job_name))
        prometheus_metrics.record_job_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_job_lock("release", "error")
        logger.warning(
            "job_lock_release_failed",
            extra={"job_name": job_name, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def job_lock(job_name: str, ttl_s: int = 600) -> Iterator[bool]:
    acquired = acquire_job_lock(job_name, ttl_s=ttl_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_job_lock(job_name)
