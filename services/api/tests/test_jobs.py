"""Scheduled jobs and their once-per-period lock."""

import json
from datetime import datetime, timezone

import pytest

from hearth import db as hearth_db
from hearth import jobs
from hearth.infra.job_lock import JobAlreadyRan, acquire, job_lock, job_lock_key, release

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def job_sessions(monkeypatch):
    from conftest import TestingSessionLocal

    monkeypatch.setattr(hearth_db, "_SessionLocal", TestingSessionLocal)


def test_acquire_is_exclusive_until_released(mock_redis):
    assert acquire("daily-digest", "2026-03-10") is True
    assert acquire("daily-digest", "2026-03-10") is False
    assert mock_redis.ttl(job_lock_key("daily-digest", "2026-03-10")) > 0

    release("daily-digest", "2026-03-10")
    assert acquire("daily-digest", "2026-03-10") is True


def test_job_lock_refuses_second_run():
    with job_lock("weekly-summary", "2026-W11"):
        pass
    with pytest.raises(JobAlreadyRan) as exc:
        with job_lock("weekly-summary", "2026-W11"):
            pass
    assert exc.value.key == "hearth:job:weekly-summary:2026-W11"


def test_job_lock_released_when_body_fails():
    with pytest.raises(ValueError):
        with job_lock("overdue", "2026-03-10"):
            raise ValueError("boom")
    with job_lock("overdue", "2026-03-10"):
        pass


def test_job_period():
    assert jobs.job_period("daily-digest", NOW) == "2026-03-10"
    assert jobs.job_period("weekly-summary", NOW) == "2026-W11"


def test_run_job_once_per_period(job_sessions, household, other_household):
    first = jobs.run_job("daily-digest", now=NOW)
    assert first == {"processed": 2, "failed": []}

    second = jobs.run_job("daily-digest", now=NOW)
    assert second["processed"] == 0
    assert second["skipped"] == "hearth:job:daily-digest:2026-03-10"

    forced = jobs.run_job("daily-digest", now=NOW, force=True)
    assert forced["processed"] == 2


def test_cli_prints_result(job_sessions, household, capsys, monkeypatch):
    monkeypatch.setattr(jobs, "datetime", _FixedDatetime)
    assert jobs.main(["maintenance"]) == 0
    assert json.loads(capsys.readouterr().out) == {"processed": 1, "failed": []}


class _FixedDatetime(datetime):
    @classmethod
    def now(cls, tz=None):
        return NOW.astimezone(tz) if tz else NOW.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_async_redis_shares_lock_state(mock_redis):
    from hearth.infra.redis_client import get_redis

    acquire("maintenance", "2026-03-10")
    r = await get_redis()
    assert await r.ping() is True
    assert await r.exists(job_lock_key("maintenance", "2026-03-10")) == 1


def test_failed_households_are_retried_within_the_period(job_sessions, household, other_household, monkeypatch):
    from hearth.services.digest import DigestService

    real_daily = DigestService._daily_for_household
    calls = []

    def flaky(self, household_id, local_now):
        calls.append(household_id)
        if household_id == other_household.id and calls.count(household_id) == 1:
            raise ConnectionError("push service down")
        return real_daily(self, household_id, local_now)

    monkeypatch.setattr(DigestService, "_daily_for_household", flaky)

    first = jobs.run_job("daily-digest", now=NOW)
    assert first == {"processed": 1, "failed": [other_household.id]}

    retry = jobs.run_job("daily-digest", now=NOW)
    assert retry == {"processed": 1, "failed": []}
    assert calls.count(household.id) == 1
    assert calls.count(other_household.id) == 2

    third = jobs.run_job("daily-digest", now=NOW)
    assert third["skipped"] == "hearth:job:daily-digest:2026-03-10"


def test_take_failed_empties_the_set(mock_redis):
    from hearth.infra.job_lock import failed_key, record_failed, take_failed

    record_failed("overdue", "2026-03-10", ["b", "a"])
    assert mock_redis.ttl(failed_key("overdue", "2026-03-10")) > 0
    assert take_failed("overdue", "2026-03-10") == ["a", "b"]
    assert take_failed("overdue", "2026-03-10") == []
