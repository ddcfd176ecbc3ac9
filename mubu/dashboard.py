"""Savings dashboard aggregates over a comparison history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .models import PriceComparisonRecord

# Roughly a round-trip ticket to Southeast Asia
DEFAULT_GOAL = 500_000


@dataclass
class SavingsSummary:
    total_savings: int
    comparison_count: int
    saving_count: int
    average_savings: int
    best_deal: PriceComparisonRecord | None
    goal: int = DEFAULT_GOAL

    @classmethod
    def from_records(
        cls, records: Iterable[PriceComparisonRecord], goal: int = DEFAULT_GOAL
    ) -> SavingsSummary:
        """Summarize a history. Only positive savings count toward the total."""
        if goal <= 0:
            raise ValueError("목표 금액은 0보다 커야 합니다")
        records = list(records)
        positive = [r for r in records if r.savings_amount > 0]
        total = sum(r.savings_amount for r in positive)
        best = max(positive, key=lambda r: r.savings_amount, default=None)
        return cls(
            total_savings=total,
            comparison_count=len(records),
            saving_count=len(positive),
            average_savings=round(total / len(positive)) if positive else 0,
            best_deal=best,
            goal=goal,
        )

    @property
    def progress(self) -> float:
        """Fraction of the goal reached, capped at 1.0."""
        return min(self.total_savings / self.goal, 1.0)

    @property
    def remaining(self) -> int:
        return max(self.goal - self.total_savings, 0)

    def display(self) -> str:
        lines = [
            f"총 절약 금액: ₩{self.total_savings:,}",
            f"비교 횟수: {self.comparison_count}회 (절약 {self.saving_count}회)",
            f"평균 절약: ₩{self.average_savings:,}",
        ]
        if self.best_deal is not None:
            lines.append(
                f"최고의 딜: {self.best_deal.product_name} "
                f"(₩{self.best_deal.savings_amount:,})"
            )
        bar = "█" * int(self.progress * 20)
        lines.append(f"항공권 목표: {bar:<20} {self.progress:.0%}")
        if self.remaining:
            lines.append(f"목표까지 ₩{self.remaining:,} 남았어요")
        else:
            lines.append("목표 달성! 🎉")
        return "\n".join(lines)
