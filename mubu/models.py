"""Data models shared by the comparison pipeline, usage tracking and storage."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

PREMIUM_TIERS = ("daily", "weekly", "monthly")


class ComparisonStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CaptureResult:
    """A product photo with its confirmed price, ready for comparison."""

    product_image: bytes
    product_name: str
    product_name_korean: str
    price: float
    currency: str          # ISO 4217
    currency_symbol: str
    price_tag_detected: bool
    mime_type: str = "image/jpeg"
    brand: str | None = None
    description: str | None = None
    ocr_raw_text: str | None = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class PriceComparisonRecord:
    """Outcome of one comparison.

    ``korean_price is None`` means no domestic price could be found; in that
    case ``savings_amount`` is 0 and carries no meaning.
    """

    product_name: str
    local_price: float
    local_currency: str
    korean_price: int | None
    converted_local_price: int
    savings_amount: int
    product_image_url: str = ""
    product_link: str | None = None
    comparison_source: str = ""
    status: ComparisonStatus = ComparisonStatus.COMPLETED
    created_at: str = field(default_factory=_now_iso)
    product_description: str | None = None
    ocr_raw_text: str | None = None
    id: int | None = None

    @property
    def has_korean_price(self) -> bool:
        return self.korean_price is not None

    @classmethod
    def from_row(cls, row) -> PriceComparisonRecord:
        return cls(
            id=row["id"],
            product_name=row["product_name"],
            local_price=row["local_price"],
            local_currency=row["local_currency"],
            korean_price=row["korean_price"],
            converted_local_price=row["converted_local_price"],
            savings_amount=row["savings_amount"],
            product_image_url=row["product_image_url"],
            product_link=row["product_link"],
            comparison_source=row["comparison_source"],
            status=ComparisonStatus(row["status"]),
            created_at=row["created_at"],
            product_description=row["product_description"],
            ocr_raw_text=row["ocr_raw_text"],
        )


def make_record(
    product_name: str,
    local_price: float,
    local_currency: str,
    converted_local_price: int,
    korean_price: int | None,
    **kwargs,
) -> PriceComparisonRecord:
    """Build a record with ``savings_amount`` derived from the two prices."""
    savings = 0 if korean_price is None else korean_price - converted_local_price
    return PriceComparisonRecord(
        product_name=product_name,
        local_price=local_price,
        local_currency=local_currency,
        korean_price=korean_price,
        converted_local_price=converted_local_price,
        savings_amount=savings,
        **kwargs,
    )


@dataclass
class UsageState:
    use_count: int = 0
    cumulative_savings: float = 0.0
    last_used: str | None = None  # ISO8601


@dataclass
class UserAccount:
    id: str
    email: str | None = None
    display_name: str | None = None
    subscription_tier: str = "free"
    subscription_expires_at: str | None = None  # ISO8601
    daily_search_count: int = 0
    last_search_date: str | None = None  # YYYY-MM-DD
    total_savings: int = 0
    usage_savings: int = 0
    country: str | None = None
    language: str = "ko"
    status: str = "active"

    @property
    def is_anonymous(self) -> bool:
        return self.id.startswith("anon_")

    @property
    def is_authenticated(self) -> bool:
        return not self.is_anonymous

    def is_premium(self, now: datetime | None = None) -> bool:
        if self.subscription_tier not in PREMIUM_TIERS:
            return False
        if not self.subscription_expires_at:
            return True
        now = now or datetime.now(timezone.utc)
        expires = datetime.fromisoformat(self.subscription_expires_at)
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now < expires

    @classmethod
    def from_row(cls, row) -> UserAccount:
        return cls(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            subscription_tier=row["subscription_tier"],
            subscription_expires_at=row["subscription_expires_at"],
            daily_search_count=row["daily_search_count"],
            last_search_date=row["last_search_date"],
            total_savings=row["total_savings"],
            usage_savings=row["usage_savings"],
            country=row["country"],
            language=row["language"],
            status=row["status"],
        )
