"""Vision backend base class, data types, response parsing and factory."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import MubuConfig


@dataclass
class ProductInfo:
    name: str
    name_english: str
    name_korean: str  # 네이버 쇼핑 검색어로 사용
    brand: str | None = None
    description: str | None = None


@dataclass
class PriceTagInfo:
    detected: bool = False
    price: float | None = None
    currency: str | None = None  # ISO 4217
    currency_symbol: str | None = None
    raw_text: str | None = None


@dataclass
class ProductAnalysis:
    product: ProductInfo
    price_tag: PriceTagInfo = field(default_factory=PriceTagInfo)
    confidence: float = 0.0  # 0.0〜1.0


PRODUCT_PROMPT = """\
You are a product and price analysis expert for a travel price comparison app.
Analyze this image and separate two pieces of information:
1. THE PRODUCT ITSELF (what item is being sold)
2. THE PRICE TAG/LABEL (if visible in the image)

If this is a webpage or app screenshot, the title text is more accurate than
the product photo. If this is a physical product, read all text on the package.

Distinguish complete products from parts and accessories:
"마우스" is a mouse, "마우스 부품" / "나사" are parts; "케이스" is an accessory.
Never call a part or accessory by the name of the complete product.

nameKorean must be a search term suitable for Korean shopping sites such as
Naver Shopping: brand in Korean when well-known (Logitech -> 로지텍),
then product type, then variant.

For the price tag, extract the number only and identify the currency:
฿ = THB, $ = USD, € = EUR, ¥ = JPY or CNY, £ = GBP, ₩ = KRW, ₫ = VND.

Respond with JSON only:
{
  "product": {
    "name": "specific product name with brand and type",
    "nameEnglish": "Brand + Product Type + Variant",
    "nameKorean": "브랜드 + 제품타입 + 맛/옵션",
    "brand": "brand name" or null,
    "description": "product type and brief details" or null
  },
  "priceTag": {
    "detected": true/false,
    "price": number or null,
    "currency": "currency code" or null,
    "currencySymbol": "symbol" or null,
    "rawText": "exact text from tag" or null
  },
  "confidence": number between 0 and 1
}

If there is no identifiable product, set product.name to "No product detected".
"""

PRICE_TAG_PROMPT = """\
You are a price tag OCR expert. Extract the price from this price tag, label
or receipt.

Common currencies: ฿ = THB, $ = USD, € = EUR, ¥ = JPY or CNY, £ = GBP,
₩ = KRW, ₫ = VND, S$ = SGD, HK$ = HKD.

Respond with JSON only:
{
  "price": extracted number only,
  "currency": "currency code (THB, USD, EUR, etc)",
  "currencySymbol": "actual symbol",
  "rawText": "exact text from price tag",
  "confidence": number between 0 and 1
}
"""


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        # Remove first and last fence lines
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _opt_float(value) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def parse_product_analysis(text: str) -> ProductAnalysis:
    """Parse the combined product + price tag JSON returned by a model."""
    data = json.loads(_strip_fences(text))
    product = data.get("product") or {}
    tag = data.get("priceTag") or {}

    name = product.get("name") or ""
    info = ProductInfo(
        name=name,
        name_english=product.get("nameEnglish") or name,
        name_korean=product.get("nameKorean") or name,
        brand=product.get("brand") or None,
        description=product.get("description") or None,
    )
    price = _opt_float(tag.get("price"))
    price_tag = PriceTagInfo(
        detected=bool(tag.get("detected")) and price is not None,
        price=price,
        currency=tag.get("currency") or None,
        currency_symbol=tag.get("currencySymbol") or None,
        raw_text=tag.get("rawText") or None,
    )
    return ProductAnalysis(
        product=info,
        price_tag=price_tag,
        confidence=float(data.get("confidence", 0.0)),
    )


def parse_price_tag(text: str) -> PriceTagInfo:
    """Parse a price-tag-only OCR response."""
    data = json.loads(_strip_fences(text))
    price = _opt_float(data.get("price"))
    return PriceTagInfo(
        detected=price is not None,
        price=price,
        currency=data.get("currency") or None,
        currency_symbol=data.get("currencySymbol") or None,
        raw_text=data.get("rawText") or None,
    )


class VisionBackend(ABC):
    """Abstract base for product and price tag recognition from images."""

    @abstractmethod
    async def analyze_product_with_price(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> ProductAnalysis:
        """Identify the product and, if visible, its price tag."""
        ...

    @abstractmethod
    async def analyze_price_tag(
        self, image: bytes, mime_type: str = "image/jpeg"
    ) -> PriceTagInfo:
        """Read only the price tag from a close-up photo."""
        ...


def create_backend(config: MubuConfig) -> VisionBackend:
    """Create a vision backend based on configuration."""
    backend_name = config.vision.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeVisionBackend

            return ClaudeVisionBackend(
                api_key=config.vision.claude.api_key,
                model=config.vision.claude.model,
                timeout=config.http.timeout,
                retries=config.http.retries,
            )
        case "gemini":
            from .gemini import GeminiVisionBackend

            return GeminiVisionBackend(
                api_key=config.vision.gemini.api_key,
                model=config.vision.gemini.model,
                timeout=config.http.timeout,
            )
        case _:
            raise ValueError(
                f"알 수 없는 Vision 백엔드: {backend_name!r}  "
                f"(claude / gemini 중에서 선택하세요)"
            )
