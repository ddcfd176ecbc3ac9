"""Price comparison history for accounts and for the local device."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..models import PriceComparisonRecord
from .schema import ensure_schema, immediate

LOCAL_HISTORY_LIMIT = 100

_COLUMNS = (
    "product_name, local_price, local_currency, korean_price,"
    " converted_local_price, savings_amount, product_image_url, product_link,"
    " comparison_source, status, product_description, ocr_raw_text, created_at"
)


def _values(record: PriceComparisonRecord) -> tuple:
    return (
        record.product_name,
        record.local_price,
        record.local_currency,
        record.korean_price,
        record.converted_local_price,
        record.savings_amount,
        record.product_image_url,
        record.product_link,
        record.comparison_source,
        record.status.value,
        record.product_description,
        record.ocr_raw_text,
        record.created_at,
    )


class _BaseDB:
    def __init__(self, db_path: str | Path) -> None:
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


class ComparisonDB(_BaseDB):
    """Manages the price_comparisons table (durable, per account)."""

    def __init__(self, db_path: str | Path = "~/.config/mubu/account.db") -> None:
        super().__init__(db_path)

    def save(self, user_id: str, record: PriceComparisonRecord) -> int:
        """Insert a comparison owned by *user_id*.

        Positive savings are added to the owner's ``total_savings`` in the
        same transaction.

        Returns:
            The inserted row ID.
        """
        conn = self._get_conn()
        with immediate(conn):
            cur = conn.execute(
                f"INSERT INTO price_comparisons (user_id, {_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (user_id, *_values(record)),
            )
            if record.korean_price is not None and record.savings_amount > 0:
                conn.execute(
                    """UPDATE users
                       SET total_savings = total_savings + ?,
                           updated_at = datetime('now', 'localtime')
                       WHERE id = ?""",
                    (record.savings_amount, user_id),
                )
        return cur.lastrowid

    def get_user_comparisons(
        self, user_id: str, limit: int = 10
    ) -> list[PriceComparisonRecord]:
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT * FROM price_comparisons
               WHERE user_id = ?
               ORDER BY created_at DESC, id DESC
               LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [PriceComparisonRecord.from_row(r) for r in rows]


class LocalComparisonDB(_BaseDB):
    """Manages the local_comparisons table (device history, newest 100)."""

    def __init__(self, db_path: str | Path = "~/.config/mubu/device.db") -> None:
        super().__init__(db_path)

    def save(self, record: PriceComparisonRecord) -> int:
        conn = self._get_conn()
        with immediate(conn):
            cur = conn.execute(
                f"INSERT INTO local_comparisons ({_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _values(record),
            )
            conn.execute(
                """DELETE FROM local_comparisons
                   WHERE id NOT IN (
                       SELECT id FROM local_comparisons
                       ORDER BY id DESC LIMIT ?
                   )""",
                (LOCAL_HISTORY_LIMIT,),
            )
        return cur.lastrowid

    def get_comparisons(self, limit: int = LOCAL_HISTORY_LIMIT) -> list[PriceComparisonRecord]:
        """Return saved comparisons, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM local_comparisons ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [PriceComparisonRecord.from_row(r) for r in rows]

    def clear(self) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM local_comparisons")
        conn.commit()
