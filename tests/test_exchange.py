"""Tests for currency conversion (mocked rate providers)."""

import httpx
import pytest

from mubu.exchange import (
    CurrencyConverter,
    convert_with_rates,
    currency_symbol,
)

PRIMARY = "https://fx.example/primary"
FALLBACK = "https://fx.example/fallback"
RATES = {"USD": 1.0, "THB": 32.0, "KRW": 1200.0, "JPY": 150.0}


def _converter(handler) -> CurrencyConverter:
    return CurrencyConverter(
        primary_url=PRIMARY,
        fallback_url=FALLBACK,
        retries=0,
        transport=httpx.MockTransport(handler),
    )


class TestConvertWithRates:
    def test_through_usd(self):
        converted, rate = convert_with_rates(1200, "THB", "KRW", RATES)
        assert converted == 45_000
        assert rate == pytest.approx(37.5)

    def test_rounds_half_up(self):
        # 1 THB = 37.5 KRW
        assert convert_with_rates(1, "THB", "KRW", RATES)[0] == 38

    def test_same_currency(self):
        assert convert_with_rates(980, "KRW", "KRW", RATES) == (980, 1.0)

    def test_unknown_currency(self):
        with pytest.raises(ValueError, match="FX_RATE_NOT_FOUND"):
            convert_with_rates(10, "XYZ", "KRW", RATES)

    def test_deterministic(self):
        results = {convert_with_rates(99.99, "USD", "JPY", RATES) for _ in range(5)}
        assert len(results) == 1


def test_currency_symbol():
    assert currency_symbol("thb") == "฿"
    assert currency_symbol("XYZ") == "XYZ"


class TestCurrencyConverter:
    @pytest.mark.asyncio
    async def test_convert_uses_primary(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == PRIMARY
            return httpx.Response(200, json={"result": "success", "rates": RATES})

        conv = await _converter(handler).convert(1200, "thb", "krw")
        assert conv.from_currency == "THB"
        assert conv.to_currency == "KRW"
        assert conv.converted_amount == 45_000
        assert conv.timestamp

    @pytest.mark.asyncio
    async def test_falls_back_when_primary_unsuccessful(self):
        hits = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(str(request.url))
            if str(request.url) == PRIMARY:
                return httpx.Response(200, json={"result": "error"})
            return httpx.Response(200, json={"rates": RATES})

        conv = await _converter(handler).convert(10, "USD", "KRW")
        assert conv.converted_amount == 12_000
        assert hits == [PRIMARY, FALLBACK]

    @pytest.mark.asyncio
    async def test_falls_back_when_primary_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == PRIMARY:
                return httpx.Response(500)
            return httpx.Response(200, json={"rates": RATES})

        rate = await _converter(handler).get_exchange_rate("USD", "THB")
        assert rate == 32.0

    @pytest.mark.asyncio
    async def test_both_providers_fail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == PRIMARY:
                return httpx.Response(500)
            return httpx.Response(200, json={})

        with pytest.raises(RuntimeError):
            await _converter(handler).convert(10, "USD", "KRW")

    @pytest.mark.asyncio
    async def test_rates_are_cached(self):
        hits = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(request)
            return httpx.Response(200, json={"result": "success", "rates": RATES})

        converter = _converter(handler)
        await converter.convert(1, "USD", "KRW")
        await converter.convert(2, "USD", "KRW")
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self):
        converter = _converter(lambda request: httpx.Response(500))
        with pytest.raises(ValueError):
            await converter.convert(0, "USD", "KRW")
