"""Affiliate link generation and click analytics for Coupang Partners / Naver."""

from __future__ import annotations

import logging
import secrets
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from .db import ClickDB

logger = logging.getLogger(__name__)

ALLOWED_REDIRECT_HOSTS = frozenset(
    {
        "shopping.naver.com",
        "search.naver.com",
        "www.coupang.com",
        "coupang.com",
        "link.coupang.com",
    }
)

# Rough click-to-revenue assumptions
COUPANG_CONVERSION = 0.03
NAVER_CONVERSION = 0.025
AVG_ORDER_VALUE = 50_000
AVG_COMMISSION = 0.025


@dataclass(frozen=True)
class AffiliateLink:
    original_link: str
    affiliate_link: str
    platform: str | None  # "coupang" | "naver", None for unknown hosts
    commission: str = "0%"


def _random_suffix() -> str:
    return secrets.token_hex(5)[:9]


def detect_platform(url: str) -> str | None:
    if "coupang.com" in url:
        return "coupang"
    if "naver.com" in url:
        return "naver"
    return None


class AffiliateLinkService:
    def __init__(
        self,
        coupang_partner_id: str = "",
        naver_affiliate_id: str = "",
        app_url: str = "http://localhost:5000",
    ) -> None:
        self._coupang_partner_id = coupang_partner_id or "demo_partner"
        self._naver_affiliate_id = naver_affiliate_id or "demo_naver"
        self._app_url = app_url.rstrip("/")

    def coupang_link(self, original_url: str) -> AffiliateLink:
        sub_id = f"mubu_{int(time.time() * 1000)}_{_random_suffix()}"
        link = (
            f"https://link.coupang.com/a/{self._coupang_partner_id}"
            f"?url={quote(original_url, safe='')}&subid={sub_id}"
        )
        return AffiliateLink(original_url, link, "coupang", "최대 3%")

    def naver_link(self, original_url: str) -> AffiliateLink:
        parts = urlsplit(original_url)
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        query.update(
            {
                "af_id": self._naver_affiliate_id,
                "ref": "mubu",
                "utm_source": "mubu_app",
                "utm_medium": "affiliate",
            }
        )
        link = urlunsplit(parts._replace(query=urlencode(query)))
        return AffiliateLink(original_url, link, "naver", "최대 2%")

    def generate(self, original_url: str, product_name: str = "") -> AffiliateLink:
        """Wrap *original_url* for the platform it belongs to.

        Unknown hosts are returned unchanged, with no platform.
        """
        match detect_platform(original_url):
            case "coupang":
                link = self.coupang_link(original_url)
            case "naver":
                link = self.naver_link(original_url)
            case _:
                return AffiliateLink(original_url, original_url, None)
        logger.debug("Affiliate link (%s) for %r", link.platform, product_name)
        return link

    def tracking_link(self, link: AffiliateLink, user_id: str | None = None) -> str:
        tracking_id = f"track_{int(time.time() * 1000)}_{_random_suffix()}"
        params = urlencode(
            {
                "t": tracking_id,
                "p": link.platform or "",
                "u": user_id or "anonymous",
                "target": link.affiliate_link,
            }
        )
        return f"{self._app_url}/track/click?{params}"


def is_allowed_redirect(url: str) -> bool:
    """Only redirect clicks to known shopping hosts over http(s)."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return False
    return (parts.hostname or "") in ALLOWED_REDIRECT_HOSTS


@dataclass
class ClickAnalytics:
    total_clicks: int = 0
    clicks_by_platform: dict[str, int] = field(default_factory=dict)
    top_products: list[tuple[str, str, int]] = field(default_factory=list)
    clicks_by_date: list[tuple[str, int]] = field(default_factory=list)


def estimate_revenue(analytics: ClickAnalytics) -> int:
    coupang = analytics.clicks_by_platform.get("coupang", 0)
    naver = analytics.clicks_by_platform.get("naver", 0)
    revenue = (
        coupang * COUPANG_CONVERSION * AVG_ORDER_VALUE * AVG_COMMISSION
        + naver * NAVER_CONVERSION * AVG_ORDER_VALUE * AVG_COMMISSION
    )
    return round(revenue)


class AffiliateTracker:
    """Record affiliate clicks and summarize them."""

    def __init__(self, db: ClickDB) -> None:
        self._db = db

    def track_click(
        self,
        target: str,
        product_name: str,
        original_link: str = "",
        user_id: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
    ) -> str:
        """Record a click and return the URL to redirect to.

        Raises:
            ValueError: If *target* is not an allowed shopping host.
        """
        if not is_allowed_redirect(target):
            raise ValueError(f"허용되지 않은 리다이렉트 주소입니다: {target}")

        platform = detect_platform(target) or "naver"
        self._db.add_click(
            platform=platform,
            product_name=product_name,
            original_link=original_link or target,
            affiliate_link=target,
            user_id=user_id,
            user_agent=user_agent,
            referrer=referrer,
        )
        logger.info("Tracked %s click for %r", platform, product_name)
        return target

    def analytics(
        self,
        user_id: str | None = None,
        platform: str | None = None,
        days: int = 30,
        today: date | None = None,
    ) -> ClickAnalytics:
        clicks = self._db.get_clicks(user_id=user_id, platform=platform, days=days)

        by_platform = Counter(c["platform"] for c in clicks)
        products = Counter((c["product_name"], c["platform"]) for c in clicks)
        top = [(name, plat, n) for (name, plat), n in products.most_common(5)]

        today = today or date.today()
        window = [(today - timedelta(days=i)).isoformat() for i in range(7)]
        per_day = Counter(c["clicked_at"][:10] for c in clicks)
        by_date = sorted((d, per_day.get(d, 0)) for d in window)

        return ClickAnalytics(
            total_clicks=len(clicks),
            clicks_by_platform={
                "coupang": by_platform.get("coupang", 0),
                "naver": by_platform.get("naver", 0),
            },
            top_products=top,
            clicks_by_date=by_date,
        )
