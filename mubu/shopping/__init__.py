"""Domestic shopping search: result types, backend base class and fan-out."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..affiliate import AffiliateLinkService
    from ..config import MubuConfig

logger = logging.getLogger(__name__)


@dataclass
class SearchResultItem:
    product_name: str
    price: int  # KRW
    mall_name: str
    source: str  # "naver" | "coupang"
    link: str
    brand: str | None = None
    affiliate_link: str | None = None
    image: str | None = None

    @property
    def preferred_link(self) -> str:
        return self.affiliate_link or self.link


class ShoppingBackend(ABC):
    """Abstract base for a domestic price search provider."""

    name: str = ""

    @abstractmethod
    async def search(
        self, product_name: str, max_results: int = 10
    ) -> list[SearchResultItem]:
        """Return listings for *product_name*, not necessarily sorted."""
        ...


class MultiShoppingSearch(ShoppingBackend):
    """Query several backends concurrently and merge by ascending price.

    A backend that fails is logged and skipped; the search only fails when
    every backend fails.
    """

    name = "multi"

    def __init__(self, backends: list[ShoppingBackend]) -> None:
        if not backends:
            raise ValueError("검색 백엔드가 하나 이상 필요합니다")
        self._backends = backends

    async def search(
        self, product_name: str, max_results: int = 3
    ) -> list[SearchResultItem]:
        results = await asyncio.gather(
            *(b.search(product_name, max_results * 2) for b in self._backends),
            return_exceptions=True,
        )

        merged: list[SearchResultItem] = []
        errors: list[BaseException] = []
        for backend, result in zip(self._backends, results):
            if isinstance(result, BaseException):
                logger.warning("%s search failed: %s", backend.name, result)
                errors.append(result)
                continue
            merged.extend(result)

        if errors and len(errors) == len(self._backends):
            raise RuntimeError(f"모든 쇼핑 검색이 실패했습니다: {product_name}") from errors[0]

        merged.sort(key=lambda i: i.price)
        return merged[: max_results * 2]


def create_search(
    config: MubuConfig, affiliate: AffiliateLinkService | None = None
) -> MultiShoppingSearch:
    """Build the search fan-out from configuration."""
    from .naver import NaverShoppingClient

    naver = NaverShoppingClient(
        client_id=config.shopping.naver.client_id,
        client_secret=config.shopping.naver.client_secret,
        cache_ttl=config.shopping.naver.cache_ttl,
        timeout=config.http.timeout,
        retries=config.http.retries,
        affiliate=affiliate,
    )
    return MultiShoppingSearch([naver])
