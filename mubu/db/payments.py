"""Payment orders, keyed by merchant order reference."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .schema import ensure_schema, immediate


class PaymentDB:
    """Manages the payments table."""

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

    def create_order(
        self, merchant_uid: str, user_id: str, plan: str, amount: int, provider: str
    ) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            """INSERT INTO payments (merchant_uid, user_id, plan, amount, provider)
               VALUES (?, ?, ?, ?, ?)""",
            (merchant_uid, user_id, plan, amount, provider),
        )
        conn.commit()
        return cur.lastrowid

    def get_order(self, merchant_uid: str) -> dict | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM payments WHERE merchant_uid = ?", (merchant_uid,)
        ).fetchone()
        return dict(row) if row else None

    def mark_paid(self, merchant_uid: str, payment_id: str) -> bool:
        """Flip an order to 'paid' exactly once.

        Returns:
            True if this call made the transition, False if the order was
            already paid (or does not exist).
        """
        conn = self._get_conn()
        with immediate(conn):
            cur = conn.execute(
                """UPDATE payments
                   SET status = 'paid',
                       payment_id = ?,
                       updated_at = datetime('now', 'localtime')
                   WHERE merchant_uid = ? AND status != 'paid'""",
                (payment_id, merchant_uid),
            )
        return cur.rowcount == 1

    def set_status(self, merchant_uid: str, status: str) -> None:
        conn = self._get_conn()
        conn.execute(
            """UPDATE payments
               SET status = ?, updated_at = datetime('now', 'localtime')
               WHERE merchant_uid = ?""",
            (status, merchant_uid),
        )
        conn.commit()
