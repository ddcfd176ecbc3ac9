"""Tests for MaintenanceScheduler."""

from datetime import datetime, timedelta, timezone

import pytest

pytest.importorskip("apscheduler")

from mubu.config import load_config
from mubu.db import UserDB
from mubu.models import UserAccount
from mubu.scheduler import MaintenanceScheduler


@pytest.fixture
def config(tmp_path):
    config = load_config()
    config.database.account_path = str(tmp_path / "account.db")
    return config


def test_scheduler_not_running_initially(config):
    scheduler = MaintenanceScheduler(config)
    assert scheduler.running is False
    scheduler.stop()  # no-op when not started


def test_scheduler_setup_jobs(config):
    """Both maintenance jobs are registered."""
    config.scheduler.expire_schedule = "*/10 * * * *"
    scheduler = MaintenanceScheduler(config)
    scheduler.setup_jobs()

    jobs = {j["id"]: j for j in scheduler.get_jobs()}
    assert set(jobs) == {"expire_subscriptions", "purge_anonymous_users"}
    assert jobs["expire_subscriptions"]["name"] == "구독 만료 처리"


def test_scheduler_invalid_cron(config):
    config.scheduler.purge_schedule = "every night"
    scheduler = MaintenanceScheduler(config)
    with pytest.raises(ValueError, match="cron"):
        scheduler.setup_jobs()


@pytest.mark.asyncio
async def test_expire_job_downgrades_ended_plans(config):
    db = UserDB(config.database.account_path)
    now = datetime.now(timezone.utc)
    db.upsert_user(UserAccount(id="ended"))
    db.upsert_user(UserAccount(id="active"))
    db.update_subscription("ended", "daily", (now - timedelta(hours=1)).isoformat())
    db.update_subscription("active", "monthly", (now + timedelta(days=10)).isoformat())

    await MaintenanceScheduler(config)._job_expire_subscriptions()

    assert db.get_user("ended").subscription_tier == "free"
    assert db.get_user("active").subscription_tier == "monthly"
    db.close()


@pytest.mark.asyncio
async def test_purge_job_removes_idle_guests(config):
    config.scheduler.anonymous_retention_days = 30
    db = UserDB(config.database.account_path)
    db.create_anonymous_user("anon_old")
    db.increment_search("anon_old", "2020-01-01")
    db.create_anonymous_user("anon_new")
    db.upsert_user(UserAccount(id="member"))
    db.increment_search("member", "2020-01-01")

    await MaintenanceScheduler(config)._job_purge_anonymous()

    assert db.get_user("anon_old") is None
    assert db.get_user("anon_new") is not None
    assert db.get_user("member") is not None
    db.close()


@pytest.mark.asyncio
async def test_job_errors_are_logged_not_raised(config, tmp_path, caplog):
    config.database.account_path = str(tmp_path)  # a directory, not a database
    await MaintenanceScheduler(config)._job_expire_subscriptions()
    assert "구독 만료 처리 중 오류" in caplog.text
