"""Photo -> analysis -> price confirmation flow for one capture session."""

from __future__ import annotations

import enum
import logging
import math

from .exchange import SUPPORTED_CURRENCIES, currency_symbol
from .models import CaptureResult
from .vision import PriceTagInfo, ProductAnalysis, VisionBackend

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "THB"

ANALYSIS_FAILED = "상품 분석에 실패했습니다. 다시 시도해주세요."
PRICE_TAG_FAILED = "가격표 인식에 실패했습니다. 다시 시도하거나 직접 입력해주세요."
INVALID_PRICE = "올바른 가격을 입력해주세요."

_NO_PRODUCT_PATTERNS = (
    "no specific product",
    "no product detected",
    "제품 미감지",
    "제품을 감지할 수 없",
)


class CaptureStep(enum.Enum):
    PRODUCT = "product"
    ANALYZING = "analyzing"
    PRICE_CONFIRM = "price_confirm"
    PRICE_MANUAL = "price_manual"
    PRICE_CAPTURE = "price_capture"


class CaptureSession:
    """Drives a single product capture until a confirmed price is available.

    Results that arrive after ``close()`` are dropped without changing state.
    """

    def __init__(self, backend: VisionBackend) -> None:
        self._backend = backend
        self.step = CaptureStep.PRODUCT
        self.image: bytes | None = None
        self.mime_type = "image/jpeg"
        self.analysis: ProductAnalysis | None = None
        self.error: str | None = None
        self.closed = False

    def _require(self, *steps: CaptureStep) -> None:
        if self.closed:
            raise RuntimeError("닫힌 촬영 세션입니다")
        if self.step not in steps:
            raise RuntimeError(f"현재 단계({self.step.value})에서는 할 수 없는 작업입니다")

    async def analyze(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> ProductAnalysis | None:
        """Analyze a product photo.

        Returns:
            The analysis, or None when it failed or the session was closed
            while waiting.
        """
        self._require(CaptureStep.PRODUCT)
        self.image = image
        self.mime_type = mime_type
        self.error = None
        self.step = CaptureStep.ANALYZING

        try:
            analysis = await self._backend.analyze_product_with_price(image, mime_type)
        except ImportError:
            raise
        except Exception as e:
            if self.closed:
                return None
            logger.warning("Product analysis failed: %s", e)
            self.error = ANALYSIS_FAILED
            self.step = CaptureStep.PRODUCT
            self.image = None
            return None

        if self.closed:
            logger.debug("Session closed during analysis; discarding result")
            return None

        self.analysis = analysis
        if analysis.price_tag.detected and analysis.price_tag.price:
            self.step = CaptureStep.PRICE_CONFIRM
        else:
            self.step = CaptureStep.PRICE_MANUAL
        logger.info(
            "Analyzed %r (confidence %.2f), next step %s",
            analysis.product.name,
            analysis.confidence,
            self.step.value,
        )
        return analysis

    @property
    def product_missing(self) -> bool:
        """True when the model reported that no product is in the photo."""
        if self.analysis is None:
            return False
        name = self.analysis.product.name.casefold()
        return any(p in name for p in _NO_PRODUCT_PATTERNS)

    def begin_price_tag_capture(self) -> None:
        self._require(CaptureStep.PRICE_MANUAL, CaptureStep.PRICE_CONFIRM)
        self.error = None
        self.step = CaptureStep.PRICE_CAPTURE

    async def analyze_price_tag(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> PriceTagInfo | None:
        self._require(CaptureStep.PRICE_CAPTURE)
        self.step = CaptureStep.ANALYZING

        try:
            tag = await self._backend.analyze_price_tag(image, mime_type)
        except ImportError:
            raise
        except Exception as e:
            if self.closed:
                return None
            logger.warning("Price tag OCR failed: %s", e)
            self.error = PRICE_TAG_FAILED
            self.step = CaptureStep.PRICE_MANUAL
            return None

        if self.closed:
            return None

        if not tag.price:
            self.error = PRICE_TAG_FAILED
            self.step = CaptureStep.PRICE_MANUAL
            return None

        tag.detected = True
        if self.analysis is not None:
            self.analysis.price_tag = tag
        self.step = CaptureStep.PRICE_CONFIRM
        return tag

    def _result(
        self, price: float, currency: str, symbol: str, detected: bool
    ) -> CaptureResult:
        product = self.analysis.product
        result = CaptureResult(
            product_image=self.image or b"",
            product_name=product.name,
            product_name_korean=product.name_korean,
            price=price,
            currency=currency,
            currency_symbol=symbol,
            price_tag_detected=detected,
            mime_type=self.mime_type,
            brand=product.brand,
            description=product.description,
            ocr_raw_text=self.analysis.price_tag.raw_text,
        )
        self.retake()
        return result

    def confirm_price(self) -> CaptureResult:
        """Accept the detected price."""
        self._require(CaptureStep.PRICE_CONFIRM)
        tag = self.analysis.price_tag
        currency = tag.currency or DEFAULT_CURRENCY
        symbol = tag.currency_symbol or "฿"
        return self._result(tag.price, currency, symbol, True)

    def submit_manual_price(
        self, text: str, currency: str = DEFAULT_CURRENCY
    ) -> CaptureResult:
        """Accept a price typed by the user.

        Raises:
            ValueError: If *text* is not a positive number or the currency
                is not supported.
        """
        self._require(CaptureStep.PRICE_MANUAL, CaptureStep.PRICE_CONFIRM)
        try:
            price = float(text.replace(",", "").strip())
        except ValueError:
            price = 0.0
        if not (price > 0 and math.isfinite(price)):
            self.error = INVALID_PRICE
            raise ValueError(INVALID_PRICE)

        code = currency.upper()
        if code not in SUPPORTED_CURRENCIES:
            self.error = f"지원하지 않는 통화입니다: {currency}"
            raise ValueError(self.error)
        return self._result(price, code, currency_symbol(code), False)

    def retake(self) -> None:
        self.step = CaptureStep.PRODUCT
        self.image = None
        self.analysis = None
        self.error = None

    def close(self) -> None:
        self.closed = True
