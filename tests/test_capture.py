"""Tests for the capture session flow (fake vision backend)."""

import asyncio

import pytest

from mubu.capture import (
    ANALYSIS_FAILED,
    INVALID_PRICE,
    PRICE_TAG_FAILED,
    CaptureSession,
    CaptureStep,
)
from mubu.vision import PriceTagInfo, ProductAnalysis, ProductInfo, VisionBackend


def _analysis(name="Tiger Balm", price=1200.0, detected=True):
    return ProductAnalysis(
        product=ProductInfo(
            name=name,
            name_english=name,
            name_korean="타이거밤",
            brand="Tiger Balm",
            description="연고",
        ),
        price_tag=PriceTagInfo(
            detected=detected,
            price=price if detected else None,
            currency="THB" if detected else None,
            currency_symbol="฿" if detected else None,
            raw_text="฿1,200" if detected else None,
        ),
        confidence=0.9,
    )


class FakeBackend(VisionBackend):
    def __init__(self, analysis=None, tag=None, error=None, gate=None):
        self.analysis = analysis
        self.tag = tag
        self.error = error
        self.gate = gate

    async def analyze_product_with_price(self, image, mime_type="image/jpeg"):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.analysis

    async def analyze_price_tag(self, image, mime_type="image/jpeg"):
        if self.error is not None:
            raise self.error
        return self.tag


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_detected_price_goes_to_confirm(self):
        session = CaptureSession(FakeBackend(_analysis()))
        result = await session.analyze(b"img", "image/png")
        assert result is not None
        assert session.step is CaptureStep.PRICE_CONFIRM
        assert session.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_missing_price_goes_to_manual(self):
        session = CaptureSession(FakeBackend(_analysis(detected=False)))
        await session.analyze(b"img")
        assert session.step is CaptureStep.PRICE_MANUAL

    @pytest.mark.asyncio
    async def test_failure_returns_to_product_step(self):
        session = CaptureSession(FakeBackend(error=RuntimeError("quota")))
        assert await session.analyze(b"img") is None
        assert session.step is CaptureStep.PRODUCT
        assert session.error == ANALYSIS_FAILED
        assert session.image is None

    @pytest.mark.asyncio
    async def test_result_after_close_is_discarded(self):
        gate = asyncio.Event()
        session = CaptureSession(FakeBackend(_analysis(), gate=gate))
        task = asyncio.create_task(session.analyze(b"img"))
        await asyncio.sleep(0)
        session.close()
        gate.set()
        assert await task is None
        assert session.analysis is None
        assert session.step is CaptureStep.ANALYZING

    @pytest.mark.asyncio
    async def test_closed_session_rejects_work(self):
        session = CaptureSession(FakeBackend(_analysis()))
        session.close()
        with pytest.raises(RuntimeError):
            await session.analyze(b"img")

    @pytest.mark.asyncio
    async def test_product_missing(self):
        session = CaptureSession(FakeBackend(_analysis(name="No product detected")))
        await session.analyze(b"img")
        assert session.product_missing


class TestPriceConfirmation:
    @pytest.mark.asyncio
    async def test_confirm_detected_price(self):
        session = CaptureSession(FakeBackend(_analysis()))
        await session.analyze(b"img")
        capture = session.confirm_price()
        assert capture.price == 1200.0
        assert capture.currency == "THB"
        assert capture.product_name_korean == "타이거밤"
        assert capture.price_tag_detected
        assert capture.product_image == b"img"
        assert capture.ocr_raw_text == "฿1,200"
        # session is ready for the next product
        assert session.step is CaptureStep.PRODUCT

    @pytest.mark.asyncio
    async def test_confirm_not_allowed_without_price(self):
        session = CaptureSession(FakeBackend(_analysis(detected=False)))
        await session.analyze(b"img")
        with pytest.raises(RuntimeError):
            session.confirm_price()

    @pytest.mark.asyncio
    async def test_manual_price(self):
        session = CaptureSession(FakeBackend(_analysis(detected=False)))
        await session.analyze(b"img")
        capture = session.submit_manual_price("1,500", "jpy")
        assert capture.price == 1500.0
        assert capture.currency == "JPY"
        assert capture.currency_symbol == "¥"
        assert not capture.price_tag_detected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "abc", "0", "-5", "inf", "nan"])
    async def test_manual_price_invalid(self, text):
        session = CaptureSession(FakeBackend(_analysis(detected=False)))
        await session.analyze(b"img")
        with pytest.raises(ValueError):
            session.submit_manual_price(text)
        assert session.error == INVALID_PRICE
        assert session.step is CaptureStep.PRICE_MANUAL

    @pytest.mark.asyncio
    async def test_manual_price_unsupported_currency(self):
        session = CaptureSession(FakeBackend(_analysis(detected=False)))
        await session.analyze(b"img")
        with pytest.raises(ValueError, match="지원하지 않는 통화"):
            session.submit_manual_price("100", "XYZ")


class TestPriceTagCapture:
    @pytest.mark.asyncio
    async def test_price_tag_fills_price(self):
        tag = PriceTagInfo(detected=False, price=89.0, currency="SGD", currency_symbol="S$")
        session = CaptureSession(FakeBackend(_analysis(detected=False), tag=tag))
        await session.analyze(b"img")
        session.begin_price_tag_capture()
        assert session.step is CaptureStep.PRICE_CAPTURE

        result = await session.analyze_price_tag(b"tag")
        assert result.detected
        assert session.step is CaptureStep.PRICE_CONFIRM
        capture = session.confirm_price()
        assert capture.price == 89.0
        assert capture.currency == "SGD"

    @pytest.mark.asyncio
    async def test_price_tag_without_price(self):
        tag = PriceTagInfo(detected=False)
        session = CaptureSession(FakeBackend(_analysis(detected=False), tag=tag))
        await session.analyze(b"img")
        session.begin_price_tag_capture()
        assert await session.analyze_price_tag(b"tag") is None
        assert session.step is CaptureStep.PRICE_MANUAL
        assert session.error == PRICE_TAG_FAILED

    @pytest.mark.asyncio
    async def test_retake(self):
        session = CaptureSession(FakeBackend(_analysis()))
        await session.analyze(b"img")
        session.retake()
        assert session.step is CaptureStep.PRODUCT
        assert session.image is None
        assert session.analysis is None
