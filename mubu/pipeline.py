"""Capture -> currency conversion -> domestic search -> savings verdict."""

from __future__ import annotations

import asyncio
import logging
import random
import sqlite3
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

from .models import (
    CaptureResult,
    ComparisonStatus,
    PriceComparisonRecord,
    UserAccount,
    make_record,
)
from .relevance import select_best_match
from .savings import SavingsMessage, classify

if TYPE_CHECKING:
    from .db import ComparisonDB, LocalComparisonDB
    from .exchange import Conversion, CurrencyConverter
    from .objectstore import ObjectStorage
    from .shopping import SearchResultItem, ShoppingBackend
    from .usage import UsageCheck
    from .usage.account import AccountUsageTracker
    from .usage.local import LocalUsageTracker, UsageStats

logger = logging.getLogger(__name__)

SOURCE_CONVERSION_FAILED = "AI 가격 분석"
SOURCE_NOT_FOUND = "한국 가격 정보 없음"
SOURCE_SEARCH_FAILED = "한국 가격 조회 실패"


@dataclass
class ComparisonOutcome:
    record: PriceComparisonRecord
    message: SavingsMessage
    conversion: Conversion | None = None
    match: SearchResultItem | None = None


@dataclass
class ConfirmResult:
    record: PriceComparisonRecord
    local_stats: UsageStats
    account_usage: UsageCheck
    saved_to_account: bool = False


def _cancelled(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


class PriceComparisonPipeline:
    """Runs one comparison end to end.

    External failures never escape ``compare``; they turn into a record that
    says why no comparison is available.
    """

    def __init__(
        self,
        converter: CurrencyConverter,
        search: ShoppingBackend,
        local_comparisons: LocalComparisonDB,
        account_comparisons: ComparisonDB,
        local_usage: LocalUsageTracker,
        account_usage: AccountUsageTracker,
        object_storage: ObjectStorage | None = None,
        home_currency: str = "KRW",
        max_results: int = 3,
        choice: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self._converter = converter
        self._search = search
        self._local_comparisons = local_comparisons
        self._account_comparisons = account_comparisons
        self._local_usage = local_usage
        self._account_usage = account_usage
        self._storage = object_storage
        self._home_currency = home_currency
        self._max_results = max_results
        self._choice = choice

    async def upload_image(self, capture: CaptureResult) -> str:
        """Store the product photo and return its URL, or "" on failure."""
        if self._storage is None or not capture.product_image:
            return ""
        ext = "png" if capture.mime_type == "image/png" else "jpg"
        filename = f"product_{uuid.uuid4().hex}.{ext}"
        try:
            url = await asyncio.to_thread(
                self._storage.upload, capture.product_image, filename, capture.mime_type
            )
        except Exception as e:
            logger.error("Image upload failed for %r: %s", capture.product_name, e)
            return ""
        logger.info("Image uploaded: %s", url)
        return url

    def _record(
        self,
        capture: CaptureResult,
        image_url: str,
        converted: int,
        korean_price: int | None,
        source: str,
        status: ComparisonStatus,
        link: str | None = None,
    ) -> PriceComparisonRecord:
        return make_record(
            product_name=capture.product_name,
            local_price=capture.price,
            local_currency=capture.currency,
            converted_local_price=converted,
            korean_price=korean_price,
            product_image_url=image_url,
            product_link=link,
            comparison_source=source,
            status=status,
            product_description=capture.description,
            ocr_raw_text=capture.ocr_raw_text,
        )

    def _outcome(
        self,
        record: PriceComparisonRecord,
        conversion: Conversion | None = None,
        match: SearchResultItem | None = None,
    ) -> ComparisonOutcome:
        message = classify(
            record.savings_amount,
            record.converted_local_price,
            record.has_korean_price,
            choice=self._choice,
        )
        return ComparisonOutcome(record, message, conversion, match)

    async def compare(
        self,
        capture: CaptureResult,
        image_url: str = "",
        cancel: asyncio.Event | None = None,
    ) -> ComparisonOutcome | None:
        """Compare a captured price against the cheapest relevant domestic listing.

        Returns None if *cancel* was set while a call was in flight.
        """
        try:
            conversion = await self._converter.convert(
                capture.price, capture.currency, self._home_currency
            )
        except Exception as e:
            if _cancelled(cancel):
                return None
            logger.error(
                "Currency conversion failed (%s %s -> %s): %s",
                capture.price,
                capture.currency,
                self._home_currency,
                e,
            )
            record = self._record(
                capture, image_url, 0, None, SOURCE_CONVERSION_FAILED,
                ComparisonStatus.FAILED,
            )
            return self._outcome(record)

        if _cancelled(cancel):
            logger.debug("Comparison cancelled after conversion")
            return None

        converted = conversion.converted_amount
        query = capture.product_name_korean or capture.product_name
        try:
            items = await self._search.search(query, self._max_results)
        except Exception as e:
            if _cancelled(cancel):
                return None
            logger.error("Domestic price search failed for %r: %s", query, e)
            record = self._record(
                capture, image_url, converted, None, SOURCE_SEARCH_FAILED,
                ComparisonStatus.COMPLETED,
            )
            return self._outcome(record, conversion)

        if _cancelled(cancel):
            logger.debug("Comparison cancelled after search")
            return None

        match = select_best_match(query, items)
        if match is None:
            record = self._record(
                capture, image_url, converted, None, SOURCE_NOT_FOUND,
                ComparisonStatus.COMPLETED,
            )
            return self._outcome(record, conversion)

        record = self._record(
            capture,
            image_url,
            converted,
            match.price,
            match.mall_name or match.source,
            ComparisonStatus.COMPLETED,
            link=match.preferred_link,
        )
        logger.info(
            "%r: %d KRW abroad vs %d KRW at %s (savings %d)",
            capture.product_name,
            converted,
            match.price,
            record.comparison_source,
            record.savings_amount,
        )
        return self._outcome(record, conversion, match)

    def confirm(
        self,
        outcome: ComparisonOutcome,
        user: UserAccount | None = None,
        session_id: str | None = None,
    ) -> ConfirmResult:
        """Persist a comparison the user acted on and advance both usage counters."""
        record = outcome.record
        try:
            self._local_comparisons.save(record)
        except sqlite3.Error as e:
            logger.error("Failed to save %r on this device: %s", record.product_name, e)

        saved = False
        if user is not None and user.is_authenticated:
            try:
                self._account_comparisons.save(user.id, record)
                saved = True
            except sqlite3.Error as e:
                logger.error("Failed to save comparison for %s: %s", user.id, e)

        local_stats = self._local_usage.record_comparison(record.savings_amount)
        user_id = None
        if user is not None:
            if user.is_authenticated:
                user_id = user.id
            elif session_id is None:
                session_id = user.id.removeprefix("anon_")
        account = self._account_usage.record_comparison(
            user_id=user_id,
            session_id=session_id,
            savings_amount=record.savings_amount,
        )
        return ConfirmResult(record, local_stats, account, saved)
