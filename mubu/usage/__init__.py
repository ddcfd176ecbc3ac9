"""Usage walls: free use, a login nudge (soft wall) and a premium block (hard wall).

Two independent counters exist. The device counter is advisory and never
blocks; the account counter is authoritative, resets daily and blocks at the
hard wall. They are reconciled only through an explicit sync after login.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class WallState(enum.Enum):
    FREE = "free"
    SOFT_WALL = "soft-wall"
    HARD_WALL = "hard-wall"


def validate_thresholds(soft_wall_at: int, hard_wall_at: int) -> None:
    if soft_wall_at < 0 or hard_wall_at < 0:
        raise ValueError("사용량 임계값은 0 이상이어야 합니다")
    if soft_wall_at > hard_wall_at:
        raise ValueError(
            f"soft_wall_at ({soft_wall_at}) 는 hard_wall_at ({hard_wall_at}) 이하여야 합니다"
        )


def wall_state(use_count: int, soft_wall_at: int, hard_wall_at: int) -> WallState:
    if use_count >= hard_wall_at:
        return WallState.HARD_WALL
    if use_count >= soft_wall_at:
        return WallState.SOFT_WALL
    return WallState.FREE


@dataclass
class UsageCheck:
    """Result of an account usage lookup or increment."""

    allowed: bool
    state: WallState
    current_usage: int
    daily_limit: int | None  # None for premium accounts
    remaining: int | None
    reset_time: str | None = None  # ISO8601, next local midnight
    needs_login: bool = False
    total_savings: int = 0
