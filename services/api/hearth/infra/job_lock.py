"""Run-once locks for scheduled jobs.

A scheduler that retries a failed invocation must not send the same digest
twice. Each run claims ``hearth:job:<name>:<period>`` with SET NX EX; a
second claim for the same period is refused until the key expires. The key
is released when the job raises so a retry can proceed.

Households that failed inside a completed run are kept in a Redis set next to
the lock; a later invocation in the same period retries only those.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from ..settings import settings
from .redis_client import get_sync_redis

logger = logging.getLogger("hearth.jobs")


class JobAlreadyRan(Exception):
    def __init__(self, key: str):
        super().__init__(f"Job lock already held: {key}")
        self.key = key


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def job_lock_key(job: str, period: str) -> str:
    return f"hearth:job:{job}:{period}"


def failed_key(job: str, period: str) -> str:
    return f"{job_lock_key(job, period)}:failed"


def record_failed(job: str, period: str, household_ids: list[str], ttl_sec: Optional[int] = None) -> None:
    if not household_ids:
        return
    key = failed_key(job, period)
    pipe = get_sync_redis().pipeline()
    pipe.sadd(key, *household_ids)
    pipe.expire(key, ttl_sec or settings.job_lock_ttl_sec)
    pipe.execute()


def take_failed(job: str, period: str) -> list[str]:
    """Pop every recorded failure for the period in one MULTI/EXEC."""
    key = failed_key(job, period)
    pipe = get_sync_redis().pipeline()
    pipe.smembers(key)
    pipe.delete(key)
    members, _ = pipe.execute()
    return sorted(members)


def acquire(job: str, period: str, ttl_sec: Optional[int] = None) -> bool:
    r = get_sync_redis()
    ok = r.set(job_lock_key(job, period), _iso_now(), ex=ttl_sec or settings.job_lock_ttl_sec, nx=True)
    return bool(ok)


def release(job: str, period: str) -> None:
    get_sync_redis().delete(job_lock_key(job, period))


@contextmanager
def job_lock(job: str, period: str, ttl_sec: Optional[int] = None) -> Iterator[str]:
    key = job_lock_key(job, period)
    if not acquire(job, period, ttl_sec):
        logger.info(f"Skipping {job}: already ran for {period}")
        raise JobAlreadyRan(key)
    try:
        yield key
    except Exception:
        release(job, period)
        raise
