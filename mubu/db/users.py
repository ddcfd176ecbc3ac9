"""User account CRUD and per-account usage counters."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from ..models import UserAccount
from .schema import ensure_schema, immediate


class UserDB:
    """Manages the users table."""

    def __init__(self, db_path: str | Path = "~/.config/mubu/account.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get_user(self, user_id: str) -> UserAccount | None:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return UserAccount.from_row(row) if row else None

    def upsert_user(self, user: UserAccount) -> UserAccount:
        """Insert or update profile fields; counters are left untouched."""
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO users
               (id, email, display_name, subscription_tier,
                subscription_expires_at, country, language, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   email = excluded.email,
                   display_name = excluded.display_name,
                   country = excluded.country,
                   language = excluded.language,
                   updated_at = datetime('now', 'localtime')""",
            (
                user.id,
                user.email,
                user.display_name,
                user.subscription_tier,
                user.subscription_expires_at,
                user.country,
                user.language,
                user.status,
            ),
        )
        conn.commit()
        return self.get_user(user.id)

    def create_anonymous_user(self, user_id: str) -> UserAccount:
        conn = self._get_conn()
        conn.execute(
            "INSERT OR IGNORE INTO users (id, display_name) VALUES (?, '게스트')",
            (user_id,),
        )
        conn.commit()
        return self.get_user(user_id)

    def increment_search(
        self,
        user_id: str,
        today: str,
        savings_amount: float = 0,
        limit: int | None = None,
    ) -> tuple[UserAccount, bool]:
        """Atomically count one search for today.

        The stored count is treated as 0 when ``last_search_date`` is not
        *today*. If *limit* is given and the count is already at or above it,
        nothing is written.

        Returns:
            (user after the call, whether the search was counted).

        Raises:
            LookupError: If the user does not exist.
        """
        conn = self._get_conn()
        with immediate(conn):
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if row is None:
                raise LookupError(f"사용자를 찾을 수 없습니다: {user_id}")

            user = UserAccount.from_row(row)
            count = user.daily_search_count if user.last_search_date == today else 0
            if limit is not None and count >= limit:
                user.daily_search_count = count
                return user, False

            conn.execute(
                """UPDATE users
                   SET daily_search_count = ?,
                       last_search_date = ?,
                       usage_savings = usage_savings + ?,
                       updated_at = datetime('now', 'localtime')
                   WHERE id = ?""",
                (count + 1, today, round(abs(savings_amount)), user_id),
            )
            updated = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return UserAccount.from_row(updated), True

    def update_subscription(
        self, user_id: str, tier: str, expires_at: str | None
    ) -> None:
        conn = self._get_conn()
        conn.execute(
            """UPDATE users
               SET subscription_tier = ?,
                   subscription_expires_at = ?,
                   updated_at = datetime('now', 'localtime')
               WHERE id = ?""",
            (tier, expires_at, user_id),
        )
        conn.commit()

    def expire_subscriptions(self, now: datetime | None = None) -> int:
        """Downgrade paid tiers whose expiry has passed.

        Returns:
            Number of rows updated.
        """
        now = now or datetime.now(timezone.utc)
        conn = self._get_conn()
        cur = conn.execute(
            """UPDATE users
               SET subscription_tier = 'free',
                   subscription_expires_at = NULL,
                   updated_at = datetime('now', 'localtime')
               WHERE subscription_tier != 'free'
                 AND subscription_expires_at IS NOT NULL
                 AND subscription_expires_at < ?""",
            (now.isoformat(),),
        )
        conn.commit()
        return cur.rowcount

    def purge_anonymous_users(self, days: int = 30, today: date | None = None) -> int:
        """Delete guest accounts idle for more than *days* days.

        Returns:
            Number of rows deleted.
        """
        cutoff = ((today or date.today()) - timedelta(days=days)).isoformat()
        conn = self._get_conn()
        cur = conn.execute(
            r"""DELETE FROM users
               WHERE id LIKE 'anon\_%' ESCAPE '\'
                 AND COALESCE(last_search_date, date(created_at)) < ?""",
            (cutoff,),
        )
        conn.commit()
        return cur.rowcount
