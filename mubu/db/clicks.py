"""Affiliate click log."""

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

from .schema import ensure_schema


class ClickDB:
    """Manages the affiliate_clicks table."""

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

    def add_click(
        self,
        platform: str,
        product_name: str,
        original_link: str,
        affiliate_link: str,
        user_id: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
    ) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            """INSERT INTO affiliate_clicks
               (user_id, platform, product_name, original_link,
                affiliate_link, user_agent, referrer)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user_id, platform, product_name, original_link, affiliate_link,
             user_agent, referrer),
        )
        conn.commit()
        return cur.lastrowid

    def get_clicks(
        self,
        user_id: str | None = None,
        platform: str | None = None,
        days: int = 30,
    ) -> list[dict]:
        """Return clicks from the last *days* days, newest first."""
        conn = self._get_conn()
        sql = """SELECT * FROM affiliate_clicks
                 WHERE clicked_at >= date(?, '-' || ? || ' days')"""
        params: list = [date.today().isoformat(), days]
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        if platform:
            sql += " AND platform = ?"
            params.append(platform)
        sql += " ORDER BY clicked_at DESC"
        return [dict(r) for r in conn.execute(sql, params).fetchall()]
