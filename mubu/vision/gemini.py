"""Gemini API vision backend for product and price tag recognition."""

from __future__ import annotations

import logging

from ..http import DEFAULT_TIMEOUT
from . import (
    PRICE_TAG_PROMPT,
    PRODUCT_PROMPT,
    PriceTagInfo,
    ProductAnalysis,
    VisionBackend,
    parse_price_tag,
    parse_product_analysis,
)

logger = logging.getLogger(__name__)


class GeminiVisionBackend(VisionBackend):
    """Recognize products and price tags using Google Gemini."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def _ask(self, image: bytes, mime_type: str, prompt: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Gemini API 키가 설정되지 않았습니다. "
                "설정 파일 또는 GEMINI_API_KEY 환경변수를 확인하세요."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(
            self._model,
            generation_config={"response_mime_type": "application/json"},
        )

        parts = [{"mime_type": mime_type, "data": image}, prompt]
        response = await model.generate_content_async(
            parts, request_options={"timeout": self._timeout}
        )
        text = response.text
        if not text:
            raise RuntimeError("Gemini 응답이 비어 있습니다")
        logger.debug("Gemini response: %s", text)
        return text

    async def analyze_product_with_price(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> ProductAnalysis:
        text = await self._ask(image, mime_type, PRODUCT_PROMPT)
        return parse_product_analysis(text)

    async def analyze_price_tag(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> PriceTagInfo:
        text = await self._ask(image, mime_type, PRICE_TAG_PROMPT)
        return parse_price_tag(text)
