"""Database schema definitions and migration helpers."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

_SCHEMA_VERSION = 1

_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT,
    display_name TEXT,
    subscription_tier TEXT NOT NULL DEFAULT 'free',
    subscription_expires_at TEXT,
    daily_search_count INTEGER NOT NULL DEFAULT 0,
    last_search_date TEXT,
    total_savings INTEGER NOT NULL DEFAULT 0,
    usage_savings INTEGER NOT NULL DEFAULT 0,
    country TEXT,
    language TEXT NOT NULL DEFAULT 'ko',
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE TABLE IF NOT EXISTS price_comparisons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    product_name TEXT NOT NULL,
    local_price REAL NOT NULL,
    local_currency TEXT NOT NULL,
    korean_price INTEGER,
    converted_local_price INTEGER NOT NULL DEFAULT 0,
    savings_amount INTEGER NOT NULL DEFAULT 0,
    product_image_url TEXT NOT NULL DEFAULT '',
    product_link TEXT,
    comparison_source TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'completed',
    product_description TEXT,
    ocr_raw_text TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_comparisons_user ON price_comparisons(user_id, created_at);

CREATE TABLE IF NOT EXISTS local_comparisons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_name TEXT NOT NULL,
    local_price REAL NOT NULL,
    local_currency TEXT NOT NULL,
    korean_price INTEGER,
    converted_local_price INTEGER NOT NULL DEFAULT 0,
    savings_amount INTEGER NOT NULL DEFAULT 0,
    product_image_url TEXT NOT NULL DEFAULT '',
    product_link TEXT,
    comparison_source TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'completed',
    product_description TEXT,
    ocr_raw_text TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS device_usage (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    use_count INTEGER NOT NULL DEFAULT 0,
    cumulative_savings REAL NOT NULL DEFAULT 0,
    last_used TEXT
);

CREATE TABLE IF NOT EXISTS affiliate_clicks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    platform TEXT NOT NULL,
    product_name TEXT NOT NULL,
    original_link TEXT NOT NULL,
    affiliate_link TEXT NOT NULL,
    user_agent TEXT,
    referrer TEXT,
    clicked_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_clicks_date ON affiliate_clicks(clicked_at);

CREATE TABLE IF NOT EXISTS payments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    merchant_uid TEXT NOT NULL UNIQUE,
    payment_id TEXT,
    user_id TEXT NOT NULL,
    plan TEXT NOT NULL,
    amount INTEGER NOT NULL,
    provider TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'ready',
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    db_path = Path(db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    # Check current schema version
    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current_version = row["version"] if row else 0
    except sqlite3.OperationalError:
        current_version = 0

    if current_version < _SCHEMA_VERSION:
        conn.executescript(_DDL)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        conn.commit()

    return conn


@contextmanager
def immediate(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a read-modify-write under a write lock taken up front.

    Commits on success and rolls back on any exception.
    """
    if conn.in_transaction:
        conn.commit()
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
