"""Canonical product schema emitted by every site adapter."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

Number = Union[Decimal, int, float, str]

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 200  # exclusive

# Text made only of digits, currency marks and separators is a price, not a name
_NUMERIC_ONLY = re.compile(r"^(?:(?:rs\.?|inr|mrp|₹)\s*)*[\d\s₹$\-.,/%+()]+$", re.IGNORECASE)

# UI labels that show up next to prices and get mistaken for names
_LABEL_NAMES = frozenset({
    "mrp", "price", "₹", "rs", "rs.", "inr", "rupees", "off", "save",
    "add", "add to cart", "buy now", "view details", "notify me",
    "out of stock", "in stock", "sold out", "available", "unavailable",
})


def normalize_name(name: str) -> str:
    """Deduplication key for product names."""
    return name.strip().lower()


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Coerce a numeric value to Decimal.

    None when it is not a number or not finite (JSON state may carry NaN
    and Infinity literals).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).replace(",", "").strip())
        except (InvalidOperation, ValueError):
            return None
    return number if number.is_finite() else None


def _json_number(value: Optional[Decimal]) -> Optional[Union[int, float]]:
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def is_valid_name(name: Optional[str]) -> bool:
    """Check the product-name rules: length window, not a price, not a label."""
    if not name:
        return False
    name = name.strip()
    if not (NAME_MIN_LENGTH <= len(name) < NAME_MAX_LENGTH):
        return False
    if _NUMERIC_ONLY.match(name):
        return False
    return name.lower() not in _LABEL_NAMES


@dataclass
class ProductRecord:
    """One product as seen on a storefront listing page."""

    name: str
    price: Optional[Decimal] = None
    mrp: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    is_out_of_stock: bool = False
    image_url: Optional[str] = None
    product_url: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        self.name = " ".join((self.name or "").split())
        if not is_valid_name(self.name):
            raise ValueError(f"invalid product name: {self.name!r}")

        self.price = to_decimal(self.price)
        self.mrp = to_decimal(self.mrp)
        self.discount = to_decimal(self.discount)
        self.discount_amount = to_decimal(self.discount_amount)

        if self.price is not None and self.price <= 0:
            raise ValueError("price must be positive")
        if self.mrp is not None and self.mrp <= 0:
            raise ValueError("mrp must be positive")
        if self.mrp is not None and self.price is not None and self.mrp < self.price:
            raise ValueError("mrp must be >= price")

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "price": _json_number(self.price),
            "mrp": _json_number(self.mrp),
            "discount": _json_number(self.discount),
            "discountAmount": _json_number(self.discount_amount),
            "isOutOfStock": self.is_out_of_stock,
            "imageUrl": self.image_url,
            "productUrl": self.product_url,
        }


def dedupe_products(products: List[ProductRecord]) -> List[ProductRecord]:
    """Keep the first record for each normalized name."""
    seen = set()
    unique = []
    for product in products:
        key = product.normalized_name
        if key in seen:
            continue
        seen.add(key)
        unique.append(product)
    return unique


@dataclass
class ExtractionResult:
    """Everything one adapter run extracted for one (product, location) pair."""

    website: str
    location: str
    product: str
    products: List[ProductRecord] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.products = dedupe_products(list(self.products))

    @property
    def is_empty(self) -> bool:
        return not self.products

    def to_dict(self) -> Dict[str, Any]:
        return {
            "website": self.website,
            "location": self.location,
            "product": self.product,
            "timestamp": self.timestamp.isoformat(),
            "products": [p.to_dict() for p in self.products],
        }
