"""Currency conversion against USD-based public rate tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import httpx

from .cache import TTLCache
from .http import DEFAULT_RETRIES, create_client, request_json

logger = logging.getLogger(__name__)

# Currencies commonly seen by Korean travellers
SUPPORTED_CURRENCIES: dict[str, str] = {
    "KRW": "원",
    "USD": "$",
    "JPY": "¥",
    "THB": "฿",
    "VND": "₫",
    "EUR": "€",
    "CNY": "¥",
    "GBP": "£",
    "SGD": "S$",
    "HKD": "HK$",
}


def currency_symbol(code: str) -> str:
    return SUPPORTED_CURRENCIES.get(code.upper(), code)


@dataclass(frozen=True)
class Conversion:
    from_currency: str
    to_currency: str
    amount: float
    converted_amount: int
    rate: float
    timestamp: str  # ISO8601


def convert_with_rates(
    amount: float, from_currency: str, to_currency: str, rates: dict[str, float]
) -> tuple[int, float]:
    """Convert through USD and round half up to a whole unit.

    Returns:
        (converted_amount, rate) where rate is units of *to* per unit of *from*.

    Raises:
        ValueError: If either currency is missing from the rate table.
    """
    src = rates.get(from_currency)
    dst = rates.get(to_currency)
    if not src or not dst:
        raise ValueError("FX_RATE_NOT_FOUND")

    to_usd = Decimal(str(amount)) / Decimal(str(src))
    converted = (to_usd * Decimal(str(dst))).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(converted), dst / src


class CurrencyConverter:
    """Converts amounts using cached rates from a primary and a fallback provider."""

    def __init__(
        self,
        primary_url: str = "https://open.er-api.com/v6/latest/USD",
        fallback_url: str = "https://api.exchangerate.host/latest?base=USD",
        cache_ttl: int = 300,
        timeout: float = 8.0,
        retries: int = DEFAULT_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self._primary_url = primary_url
        self._fallback_url = fallback_url
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._retries = retries
        self._transport = transport
        self._cache = cache or TTLCache()

    async def get_rates(self) -> dict[str, float]:
        return await self._cache.memo("fx_rates_usd", self._cache_ttl, self._fetch_rates)

    async def _fetch_rates(self) -> dict[str, float]:
        async with create_client(self._timeout, self._transport) as client:
            try:
                data = await request_json(
                    client, "GET", self._primary_url, retries=self._retries
                )
                if data.get("result") != "success":
                    raise RuntimeError("fx_primary_fail")
                return data["rates"]
            except (httpx.HTTPError, RuntimeError, KeyError, ValueError) as e:
                logger.warning("Primary FX provider failed (%s), trying fallback", e)

            data = await request_json(
                client, "GET", self._fallback_url, retries=self._retries
            )
            rates = data.get("rates")
            if not rates:
                raise RuntimeError("환율 정보를 가져오지 못했습니다")
            return rates

    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> float:
        rates = await self.get_rates()
        _, rate = convert_with_rates(1, from_currency.upper(), to_currency.upper(), rates)
        return rate

    async def convert(
        self, amount: float, from_currency: str, to_currency: str
    ) -> Conversion:
        if amount <= 0:
            raise ValueError("금액은 0보다 커야 합니다")
        src = from_currency.upper()
        dst = to_currency.upper()
        rates = await self.get_rates()
        converted, rate = convert_with_rates(amount, src, dst, rates)
        logger.info("Converted %s %s -> %d %s (rate %.6f)", amount, src, converted, dst, rate)
        return Conversion(
            from_currency=src,
            to_currency=dst,
            amount=amount,
            converted_amount=converted,
            rate=rate,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
