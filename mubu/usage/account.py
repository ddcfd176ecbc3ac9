"""Per-account daily usage counter. Authoritative: blocks at the hard wall."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Callable

from ..models import UsageState
from . import UsageCheck, WallState, validate_thresholds, wall_state

if TYPE_CHECKING:
    from ..db import UserDB

logger = logging.getLogger(__name__)


def effective_user_id(user_id: str | None, session_id: str | None) -> str | None:
    if user_id:
        return user_id
    if session_id:
        return f"anon_{session_id}"
    return None


def next_reset_time(now: datetime) -> str:
    tomorrow = now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=now.tzinfo).isoformat()


class AccountUsageTracker:
    def __init__(
        self,
        db: UserDB,
        soft_wall_at: int = 5,
        hard_wall_at: int = 500,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        validate_thresholds(soft_wall_at, hard_wall_at)
        self._db = db
        self._soft = soft_wall_at
        self._hard = hard_wall_at
        self._clock = clock

    def _fresh(self, now: datetime) -> UsageCheck:
        return UsageCheck(
            allowed=True,
            state=WallState.FREE,
            current_usage=0,
            daily_limit=self._hard,
            remaining=self._hard,
            reset_time=next_reset_time(now),
        )

    def _check(
        self, count: int, premium: bool, allowed: bool, savings: int, now: datetime
    ) -> UsageCheck:
        if premium:
            return UsageCheck(
                allowed=True,
                state=WallState.FREE,
                current_usage=count,
                daily_limit=None,
                remaining=None,
                reset_time=next_reset_time(now),
                total_savings=savings,
            )
        state = wall_state(count, self._soft, self._hard)
        return UsageCheck(
            allowed=allowed,
            state=state,
            current_usage=count,
            daily_limit=self._hard,
            remaining=max(0, self._hard - count),
            reset_time=next_reset_time(now),
            needs_login=state is WallState.SOFT_WALL,
            total_savings=savings,
        )

    def _load(self, user_id: str | None, session_id: str | None):
        uid = effective_user_id(user_id, session_id)
        if uid is None:
            return None
        user = self._db.get_user(uid)
        if user is None:
            if user_id:
                raise LookupError(f"사용자를 찾을 수 없습니다: {uid}")
            user = self._db.create_anonymous_user(uid)
        return user

    def record_comparison(
        self,
        user_id: str | None = None,
        session_id: str | None = None,
        savings_amount: float = 0,
    ) -> UsageCheck:
        """Count one completed comparison against the account's daily quota.

        Blocked (``allowed=False``, count unchanged) when today's count is
        already at the hard wall. Storage errors fail open.
        """
        now = self._clock()
        try:
            user = self._load(user_id, session_id)
            if user is None:
                return self._fresh(now)

            premium = user.is_premium(now.astimezone())
            limit = None if premium else self._hard
            updated, allowed = self._db.increment_search(
                user.id, now.date().isoformat(), savings_amount, limit
            )
        except (sqlite3.Error, LookupError) as e:
            logger.error("Usage check failed for %s/%s: %s", user_id, session_id, e)
            return self._fresh(now)

        if not allowed:
            logger.warning(
                "Hard wall reached for %s: %d searches today",
                updated.id,
                updated.daily_search_count,
            )
        return self._check(
            updated.daily_search_count, premium, allowed, updated.usage_savings, now
        )

    def current_usage(
        self, user_id: str | None = None, session_id: str | None = None
    ) -> UsageCheck:
        """Read today's usage without counting anything."""
        now = self._clock()
        try:
            user = self._load(user_id, session_id)
            if user is None:
                return self._fresh(now)
        except (sqlite3.Error, LookupError) as e:
            logger.error("Usage lookup failed for %s/%s: %s", user_id, session_id, e)
            return self._fresh(now)

        today = now.date().isoformat()
        count = user.daily_search_count if user.last_search_date == today else 0
        premium = user.is_premium(now.astimezone())
        allowed = premium or count < self._hard
        return self._check(count, premium, allowed, user.usage_savings, now)

    def server_state(
        self, user_id: str | None = None, session_id: str | None = None
    ) -> UsageState:
        """Account counters in the shape the device tracker syncs from.

        Unlike the usage checks, lookup and storage errors propagate: the
        result overwrites the device counters.

        Raises:
            LookupError: If there is no identity or the user does not exist.
            sqlite3.Error: If the account store cannot be read.
        """
        if effective_user_id(user_id, session_id) is None:
            raise LookupError("동기화할 계정이 없습니다")
        now = self._clock()
        user = self._load(user_id, session_id)
        today = now.date().isoformat()
        count = user.daily_search_count if user.last_search_date == today else 0
        return UsageState(
            use_count=count,
            cumulative_savings=float(user.usage_savings),
            last_used=now.isoformat(),
        )
