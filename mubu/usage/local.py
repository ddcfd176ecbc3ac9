"""Device-local usage counter. Advisory only: it flags walls but never blocks."""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..db.schema import ensure_schema, immediate
from ..models import UsageState
from . import WallState, validate_thresholds, wall_state

logger = logging.getLogger(__name__)


class UsageStore(ABC):
    """Persistence for a single device's usage counters."""

    @abstractmethod
    def get(self) -> UsageState:
        ...

    @abstractmethod
    def increment(self, savings_amount: float = 0) -> UsageState:
        """Add one use and ``abs(savings_amount)`` atomically."""
        ...

    @abstractmethod
    def reset(self) -> None:
        ...

    @abstractmethod
    def overwrite(self, state: UsageState) -> None:
        ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteUsageStore(UsageStore):
    """Keeps the device counters in the single-row device_usage table."""

    def __init__(self, db_path: str | Path = "~/.config/mubu/device.db") -> None:
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

    def _read(self, conn: sqlite3.Connection) -> UsageState:
        row = conn.execute("SELECT * FROM device_usage WHERE id = 1").fetchone()
        if row is None:
            return UsageState()
        return UsageState(
            use_count=max(0, row["use_count"]),
            cumulative_savings=max(0.0, row["cumulative_savings"]),
            last_used=row["last_used"],
        )

    def _write(self, conn: sqlite3.Connection, state: UsageState) -> None:
        conn.execute(
            """INSERT INTO device_usage (id, use_count, cumulative_savings, last_used)
               VALUES (1, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   use_count = excluded.use_count,
                   cumulative_savings = excluded.cumulative_savings,
                   last_used = excluded.last_used""",
            (state.use_count, state.cumulative_savings, state.last_used),
        )

    def get(self) -> UsageState:
        return self._read(self._get_conn())

    def increment(self, savings_amount: float = 0) -> UsageState:
        conn = self._get_conn()
        with immediate(conn):
            current = self._read(conn)
            state = UsageState(
                use_count=current.use_count + 1,
                cumulative_savings=current.cumulative_savings + abs(savings_amount),
                last_used=_now_iso(),
            )
            self._write(conn, state)
        return state

    def reset(self) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM device_usage")
        conn.commit()

    def overwrite(self, state: UsageState) -> None:
        conn = self._get_conn()
        with immediate(conn):
            self._write(conn, state)


@dataclass
class UsageStats:
    uses: int
    total_savings: float
    state: WallState
    last_used: str | None = None

    @property
    def needs_login(self) -> bool:
        return self.state is WallState.SOFT_WALL

    @property
    def needs_premium(self) -> bool:
        return self.state is WallState.HARD_WALL


class LocalUsageTracker:
    def __init__(
        self, store: UsageStore, soft_wall_at: int = 5, hard_wall_at: int = 500
    ) -> None:
        validate_thresholds(soft_wall_at, hard_wall_at)
        self._store = store
        self._soft = soft_wall_at
        self._hard = hard_wall_at

    def _stats(self, state: UsageState) -> UsageStats:
        return UsageStats(
            uses=state.use_count,
            total_savings=state.cumulative_savings,
            state=wall_state(state.use_count, self._soft, self._hard),
            last_used=state.last_used,
        )

    def stats(self) -> UsageStats:
        return self._stats(self._store.get())

    def record_comparison(self, savings_amount: float = 0) -> UsageStats:
        """Count a completed comparison. Always applied, even past the hard wall."""
        stats = self._stats(self._store.increment(savings_amount))
        match stats.state:
            case WallState.HARD_WALL:
                logger.info("Hard wall: %d uses (premium required)", stats.uses)
            case WallState.SOFT_WALL:
                logger.info(
                    "Soft wall: %d uses (login encouraged), ₩%s total",
                    stats.uses,
                    f"{stats.total_savings:,.0f}",
                )
            case _:
                logger.info(
                    "Free usage: %d uses, ₩%s total savings",
                    stats.uses,
                    f"{stats.total_savings:,.0f}",
                )
        return stats

    def reset(self) -> None:
        self._store.reset()
        logger.info("Usage stats reset")

    def sync_from_server(self, state: UsageState) -> UsageStats:
        """Replace the local counters with the account's after login."""
        self._store.overwrite(state)
        logger.info(
            "Synced with server: %d uses, ₩%s savings",
            state.use_count,
            f"{state.cumulative_savings:,.0f}",
        )
        return self._stats(state)
