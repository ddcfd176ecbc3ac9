"""Claude API vision backend for product and price tag recognition."""

from __future__ import annotations

import base64
import logging

from ..http import DEFAULT_RETRIES, DEFAULT_TIMEOUT
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


class ClaudeVisionBackend(VisionBackend):
    """Recognize products and price tags using Claude's vision capability."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._retries = retries

    async def _ask(self, image: bytes, mime_type: str, prompt: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Anthropic API 키가 설정되지 않았습니다. "
                "설정 파일 또는 ANTHROPIC_API_KEY 환경변수를 확인하세요."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64.standard_b64encode(image).decode(),
                },
            },
            {"type": "text", "text": prompt},
        ]

        client = anthropic.AsyncAnthropic(
            api_key=self._api_key, timeout=self._timeout, max_retries=self._retries
        )
        response = await client.messages.create(
            model=self._model,
            max_tokens=2048,
            messages=[{"role": "user", "content": content}],
        )
        text = response.content[0].text
        logger.debug("Claude response: %s", text)
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
