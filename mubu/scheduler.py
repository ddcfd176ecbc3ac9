"""Scheduled maintenance of the account store."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Runs subscription expiry and anonymous-user cleanup on cron schedules.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config) -> None:
        """Initialize scheduler with a MubuConfig.

        Args:
            config: MubuConfig instance.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler 가 필요합니다: pip install 'mubu[scheduler]'"
            )

        self._config = config
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        sc = self._config.scheduler

        trigger = self._parse_cron(sc.expire_schedule)
        self._scheduler.add_job(
            self._job_expire_subscriptions,
            trigger=trigger,
            id="expire_subscriptions",
            name="구독 만료 처리",
            replace_existing=True,
        )
        logger.info("구독 만료 작업 등록: %s", sc.expire_schedule)

        trigger = self._parse_cron(sc.purge_schedule)
        self._scheduler.add_job(
            self._job_purge_anonymous,
            trigger=trigger,
            id="purge_anonymous_users",
            name="익명 사용자 정리",
            replace_existing=True,
        )
        logger.info("익명 사용자 정리 작업 등록: %s", sc.purge_schedule)

    def start(self) -> None:
        """Start the scheduler."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("스케줄러 시작")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("스케줄러 중지")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"잘못된 cron 식: {expr}")

    async def _job_expire_subscriptions(self) -> None:
        """Downgrade users whose paid plan has ended."""
        logger.info("구독 만료 처리 실행 중...")

        try:
            from .db import UserDB

            db = UserDB(self._config.database.account_path)
            try:
                count = db.expire_subscriptions()
                if count > 0:
                    logger.info("만료된 구독 %d 건을 무료 플랜으로 전환했습니다", count)
            finally:
                db.close()
        except Exception:
            logger.exception("구독 만료 처리 중 오류가 발생했습니다")

    async def _job_purge_anonymous(self) -> None:
        """Delete anonymous users that have been idle past the retention window."""
        logger.info("익명 사용자 정리 실행 중...")

        try:
            from .db import UserDB

            db = UserDB(self._config.database.account_path)
            try:
                count = db.purge_anonymous_users(
                    days=self._config.scheduler.anonymous_retention_days
                )
                if count > 0:
                    logger.info("익명 사용자 %d 명을 삭제했습니다", count)
            finally:
                db.close()
        except Exception:
            logger.exception("익명 사용자 정리 중 오류가 발생했습니다")
