"""Decide whether a domestic search hit is the product that was photographed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .shopping import SearchResultItem

logger = logging.getLogger(__name__)

# Listings at or below this price (KRW) are usually accessories or parts
PRICE_FLOOR = 10_000

MIN_KEYWORD_LENGTH = 2
MATCH_THRESHOLD = 0.5


def keywords(name: str) -> list[str]:
    """Lower-cased whitespace tokens of at least two characters."""
    return [w for w in name.casefold().split() if len(w) >= MIN_KEYWORD_LENGTH]


def match_ratio(searched_name: str, candidate_name: str) -> float:
    words = keywords(searched_name)
    if not words:
        return 0.0
    candidate = candidate_name.casefold()
    matched = sum(1 for w in words if w in candidate)
    return matched / len(words)


def is_relevant(
    searched_name: str, candidate_name: str, brand: str | None = None
) -> bool:
    """Return True if *candidate_name* plausibly names the searched product.

    A brand found in either name is enough on its own. Otherwise at least
    half of the searched keywords must appear in the candidate.
    """
    if brand:
        b = brand.casefold()
        if b in candidate_name.casefold() or b in searched_name.casefold():
            logger.debug("Brand match %r: %r", brand, candidate_name)
            return True

    ratio = match_ratio(searched_name, candidate_name)
    relevant = ratio >= MATCH_THRESHOLD
    logger.debug(
        "%s relevance %.2f: %r vs %r",
        "PASS" if relevant else "FAIL",
        ratio,
        searched_name,
        candidate_name,
    )
    return relevant


def select_best_match(
    searched_name: str, items: Iterable[SearchResultItem]
) -> SearchResultItem | None:
    """Pick the cheapest relevant listing.

    Listings above PRICE_FLOOR are preferred; if none exist the full list is
    used instead.
    """
    ordered = sorted(items, key=lambda i: i.price)
    main_products = [i for i in ordered if i.price > PRICE_FLOOR]
    pool = main_products or ordered

    for item in pool:
        if is_relevant(searched_name, item.product_name, item.brand):
            return item

    if ordered:
        logger.warning(
            "Search returned %d items but none were relevant to %r",
            len(ordered),
            searched_name,
        )
    return None
