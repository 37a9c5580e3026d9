"""Data normalization utilities for price parsing, URLs and canonical records."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlencode, urljoin, urlparse, urlunparse

import structlog

from ecomscout.scrapers.records import ExtractionResult, ProductRecord, to_decimal

logger = structlog.get_logger(__name__)


# Rupee amounts as rendered by Indian storefronts: "₹49", "₹ 1,299.50", "Rs. 120", "INR 99"
CURRENCY_TOKEN_PATTERN = re.compile(
    r"(?:₹|\bRs\.?|\bINR)\s*(\d[\d,]*(?:\.\d+)?)",
    re.IGNORECASE,
)


class PriceNormalizer:
    """Price parsing utilities.

    Handles the rupee formats seen on the supported storefronts and the
    MRP/selling-price pairing rule used by every adapter.
    """

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a price string and extract numeric value.

        Handles various formats:
        - "₹1,234" -> 1234
        - "Rs. 99.50" -> 99.50
        - "1,20,000" -> 120000

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        cleaned = re.sub(r"(?i)rs\.?|inr|₹", "", raw)
        cleaned = cleaned.replace(",", "").strip()
        cleaned = re.sub(r"[^\d.]", "", cleaned)
        cleaned = cleaned.strip(".")

        if not cleaned:
            return None

        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    @classmethod
    def extract_currency_tokens(
        cls, text: str, pattern: re.Pattern = CURRENCY_TOKEN_PATTERN
    ) -> List[Decimal]:
        """Return every positive currency-tagged amount in text, in order."""
        if not text:
            return []
        tokens = []
        for match in pattern.finditer(text):
            value = cls.clean_price_string(match.group(1))
            if value is not None and value > 0:
                tokens.append(value)
        return tokens

    @staticmethod
    def resolve_prices(
        tokens: Sequence[Decimal],
    ) -> Tuple[Optional[Decimal], Optional[Decimal], Optional[Decimal]]:
        """Apply the MRP pairing rule to the amounts found in one container.

        Two or more distinct amounts: the largest is the MRP and the closest
        amount below it is the selling price. One amount: selling price only.

        Returns:
            Tuple of (price, mrp, discount)
        """
        distinct = sorted({t for t in tokens if t is not None and t > 0}, reverse=True)
        if not distinct:
            return None, None, None
        if len(distinct) == 1:
            return distinct[0], None, None
        mrp, price = distinct[0], distinct[1]
        return price, mrp, mrp - price


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    tracking_params = [
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_content",
        "utm_term",
        "ref",
        "fbclid",
        "gclid",
    ]

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)
    filtered_params = {
        k: v for k, v in query_params.items() if k not in tracking_params
    }
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )


def absolute_url(base_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve a possibly relative href against the storefront origin.

    Returns None for empty, fragment-only and javascript: links.
    """
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith(("javascript:", "data:")):
        return None
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base_url.rstrip("/") + "/", href)


def first_srcset_url(srcset: Optional[str]) -> Optional[str]:
    """First URL of a srcset attribute value."""
    if not srcset:
        return None
    first = srcset.split(",")[0].strip()
    return first.split(" ")[0] if first else None


class ResultNormalizer:
    """Maps storefront-specific fields onto the canonical ProductRecord.

    Embedded JSON state uses different keys per storefront; the alias tables
    below are checked in order and the first present key wins.
    """

    NAME_KEYS = ("name", "title", "productName", "displayName", "itemName", "productTitle", "product_name")
    PRICE_KEYS = ("price", "finalPrice", "sellingPrice", "offerPrice", "dmartPrice", "salePrice", "offer_price")
    MRP_KEYS = ("mrp", "originalPrice", "listPrice", "markedPrice", "strikePrice", "marked_price")
    IMAGE_KEYS = ("image", "imageUrl", "img", "photo", "picture", "productImage", "thumbnail", "thumbnailUrl", "images")
    URL_KEYS = ("url", "productUrl", "link", "href", "pdpUrl")
    STOCK_KEYS = ("isOutOfStock", "outOfStock", "out_of_stock", "soldOut")
    IN_STOCK_KEYS = ("inStock", "in_stock", "isAvailable", "available")

    def __init__(self, base_url: str = ""):
        self.base_url = base_url

    @staticmethod
    def _first(item: Dict[str, Any], keys: Iterable[str]) -> Any:
        for key in keys:
            value = item.get(key)
            if value not in (None, "", [], {}):
                return value
        return None

    @staticmethod
    def _unwrap_price(value: Any) -> Optional[Decimal]:
        # Some storefronts nest amounts: {"value": 4900, "unit": "paise"} is not
        # handled; only plain numbers, numeric strings and {"amount": x} are.
        if isinstance(value, dict):
            value = value.get("amount") or value.get("value")
        if isinstance(value, str):
            return PriceNormalizer.clean_price_string(value)
        return to_decimal(value)

    def _unwrap_image(self, value: Any) -> Optional[str]:
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict):
            value = value.get("url") or value.get("src") or value.get("image") or value.get("original")
        return absolute_url(self.base_url, value) if isinstance(value, str) else None

    def from_raw(self, item: Dict[str, Any]) -> Optional[ProductRecord]:
        """Build a ProductRecord from one raw JSON object, None when invalid."""
        name = self._first(item, self.NAME_KEYS)
        if not isinstance(name, str):
            return None

        price = self._unwrap_price(self._first(item, self.PRICE_KEYS))
        mrp = self._unwrap_price(self._first(item, self.MRP_KEYS))
        if price is None and mrp is not None:
            price, mrp = mrp, None
        if price is None:
            return None
        if mrp is not None and price is not None and mrp < price:
            mrp = None
        discount = mrp - price if (mrp is not None and price is not None) else None

        out_of_stock = bool(self._first(item, self.STOCK_KEYS))
        if any(item.get(key) is False for key in self.IN_STOCK_KEYS):
            out_of_stock = True

        raw_url = self._first(item, self.URL_KEYS)
        product_url = absolute_url(self.base_url, raw_url) if isinstance(raw_url, str) else None

        try:
            return ProductRecord(
                name=name,
                price=price,
                mrp=mrp,
                discount=discount,
                discount_amount=discount,
                is_out_of_stock=out_of_stock,
                image_url=self._unwrap_image(self._first(item, self.IMAGE_KEYS)),
                product_url=normalize_url(product_url) if product_url else None,
            )
        except ValueError as e:
            logger.debug("raw_product_rejected", name=str(name)[:50], reason=str(e))
            return None

    def normalize_extraction(self, result: ExtractionResult) -> ExtractionResult:
        """Re-validate and deduplicate an adapter's result before aggregation."""
        valid: List[ProductRecord] = []
        for product in result.products:
            try:
                valid.append(
                    ProductRecord(
                        name=product.name,
                        price=product.price,
                        mrp=product.mrp,
                        discount=product.discount,
                        discount_amount=product.discount_amount,
                        is_out_of_stock=product.is_out_of_stock,
                        image_url=product.image_url,
                        product_url=product.product_url,
                    )
                )
            except ValueError as e:
                logger.warning(
                    "product_dropped_in_normalization",
                    website=result.website,
                    name=product.name[:50],
                    reason=str(e),
                )
        return ExtractionResult(
            website=result.website,
            location=result.location,
            product=result.product,
            products=valid,
            timestamp=result.timestamp,
        )
