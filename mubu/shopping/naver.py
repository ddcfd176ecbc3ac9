"""Naver Shopping open API client."""

from __future__ import annotations

import html
import logging
import re
from typing import TYPE_CHECKING

import httpx

from ..cache import TTLCache
from ..http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, create_client, request_json
from . import SearchResultItem, ShoppingBackend

if TYPE_CHECKING:
    from ..affiliate import AffiliateLinkService

logger = logging.getLogger(__name__)

API_URL = "https://openapi.naver.com/v1/search/shop.json"

_TAG_RE = re.compile(r"</?[^>]+(>|$)")
# Used, refurbished, display units and empty boxes are not comparable
_BAD_KEYWORDS = re.compile(r"중고|리퍼|전시품|케이스만|빈박스", re.IGNORECASE)


def clean_title(text: str) -> str:
    return html.unescape(_TAG_RE.sub("", text)).strip()


class NaverShoppingClient(ShoppingBackend):
    name = "naver"

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        cache_ttl: int = 180,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        affiliate: AffiliateLinkService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._retries = retries
        self._affiliate = affiliate
        self._transport = transport
        self._cache = cache or TTLCache()

    async def search(
        self, product_name: str, max_results: int = 10
    ) -> list[SearchResultItem]:
        if not self._client_id or not self._client_secret:
            raise ValueError(
                "네이버 API 키가 설정되지 않았습니다. "
                "NAVER_CLIENT_ID / NAVER_CLIENT_SECRET 환경변수를 확인하세요."
            )
        display = max(1, min(100, max_results))
        key = f"nv:{product_name}:{display}"
        return await self._cache.memo(
            key, self._cache_ttl, lambda: self._fetch(product_name, display)
        )

    async def _fetch(self, product_name: str, display: int) -> list[SearchResultItem]:
        logger.info("Searching Naver Shopping for %r", product_name)
        headers = {
            "X-Naver-Client-Id": self._client_id,
            "X-Naver-Client-Secret": self._client_secret,
        }
        async with create_client(self._timeout, self._transport, headers=headers) as client:
            data = await request_json(
                client,
                "GET",
                API_URL,
                retries=self._retries,
                params={"query": product_name, "sort": "asc", "display": display},
            )

        items: list[SearchResultItem] = []
        for raw in data.get("items", []):
            title = clean_title(raw.get("title", ""))
            if _BAD_KEYWORDS.search(title):
                logger.debug("Skipping non-new listing: %r", title)
                continue
            try:
                price = int(raw.get("lprice") or 0)
            except ValueError:
                continue
            if price <= 0:
                continue

            link = raw.get("link", "")
            affiliate_link = None
            if self._affiliate is not None and link:
                affiliate_link = self._affiliate.generate(link, title).affiliate_link

            items.append(
                SearchResultItem(
                    product_name=title,
                    price=price,
                    mall_name=raw.get("mallName") or "네이버",
                    source="naver",
                    link=link,
                    brand=raw.get("brand") or None,
                    affiliate_link=affiliate_link,
                    image=raw.get("image") or None,
                )
            )

        logger.info("Naver returned %d usable listings (total %s)", len(items), data.get("total"))
        return items
