"""Savings tiers shown to the user after a comparison."""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

if TYPE_CHECKING:
    from .models import PriceComparisonRecord

MAX_QUANTITY = 99


class SavingsTier(enum.Enum):
    NO_DATA = "no-data"
    BUY_AT_HOME = "buy-at-home"
    MARGINAL = "marginal"
    GOOD_DEAL = "good-deal"
    EXCELLENT_DEAL = "excellent-deal"


_NO_DATA_TEXT = "한국에서 구할 수 없는걸 수도"
_BUY_AT_HOME_TEXT = "한국에서 사세요"
MARGINAL_TEXTS: tuple[str, ...] = (
    "구지 힘들게 이걸 사?",
    "수하물 무게는 넉넉하니?",
)
_GOOD_DEAL_TEXT = "여기서 사는게 이득"
_EXCELLENT_DEAL_TEXT = "다 쓸어 담어"


@dataclass(frozen=True)
class SavingsMessage:
    tier: SavingsTier
    text: str
    variant: str  # display tone: "default" | "secondary" | "outline"


def savings_percentage(total_savings: float, total_local_krw: float) -> float:
    if total_local_krw == 0:
        return 0.0
    return total_savings / total_local_krw * 100


def classify(
    total_savings: float,
    total_local_krw: float,
    korean_price_known: bool,
    *,
    choice: Callable[[Sequence[str]], str] = random.choice,
) -> SavingsMessage:
    """Map a savings amount to one of the five recommendation tiers.

    Positive savings mean the product is cheaper abroad. The marginal tier
    draws its text from MARGINAL_TEXTS via *choice*.
    """
    if not korean_price_known:
        return SavingsMessage(SavingsTier.NO_DATA, _NO_DATA_TEXT, "secondary")

    pct = savings_percentage(total_savings, total_local_krw)
    if pct < 0:
        return SavingsMessage(SavingsTier.BUY_AT_HOME, _BUY_AT_HOME_TEXT, "outline")
    if pct < 5:
        return SavingsMessage(SavingsTier.MARGINAL, choice(MARGINAL_TEXTS), "secondary")
    if pct < 15:
        return SavingsMessage(SavingsTier.GOOD_DEAL, _GOOD_DEAL_TEXT, "default")
    return SavingsMessage(SavingsTier.EXCELLENT_DEAL, _EXCELLENT_DEAL_TEXT, "default")


class ComparisonView:
    """Totals for buying *quantity* units of a compared product."""

    def __init__(self, record: PriceComparisonRecord, quantity: int = 1) -> None:
        self.record = record
        self.quantity = max(1, min(MAX_QUANTITY, quantity))

    @property
    def total_local_price(self) -> float:
        return self.record.local_price * self.quantity

    @property
    def total_local_krw(self) -> int:
        return self.record.converted_local_price * self.quantity

    @property
    def total_korean_price(self) -> int | None:
        if self.record.korean_price is None:
            return None
        return self.record.korean_price * self.quantity

    @property
    def total_savings(self) -> int:
        return self.record.savings_amount * self.quantity

    @property
    def percentage(self) -> float:
        return savings_percentage(self.total_savings, self.total_local_krw)

    def message(
        self, choice: Callable[[Sequence[str]], str] = random.choice
    ) -> SavingsMessage:
        return classify(
            self.total_savings,
            self.total_local_krw,
            self.record.korean_price is not None,
            choice=choice,
        )

    def savings_label(self) -> str:
        amount = abs(self.total_savings)
        if self.total_savings >= 0:
            return f"총 절약 {amount:,}원"
        return f"총 추가비용 {amount:,}원"
