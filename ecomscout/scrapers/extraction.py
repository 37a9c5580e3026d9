"""Parses settled storefront HTML into ProductRecords."""

import json
import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup, Tag

from ecomscout.scrapers.records import ExtractionResult, ProductRecord, is_valid_name
from ecomscout.scrapers.utils.normalizer import (
    CURRENCY_TOKEN_PATTERN,
    PriceNormalizer,
    ResultNormalizer,
    absolute_url,
    first_srcset_url,
    normalize_url,
)

logger = structlog.get_logger(__name__)


DEFAULT_NAME_SELECTORS = (
    "[class*='product-name']",
    "[class*='productName']",
    "[class*='ProductName']",
    "[class*='name']",
    "[class*='title']",
    "[class*='Title']",
    "h2",
    "h3",
    "h4",
    "a[title]",
)

DEFAULT_IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original", "srcset", "data-srcset")

DEFAULT_PRODUCT_LINK_PATTERNS = ("/pn/", "/product", "/p/", "/item")

DEFAULT_OUT_OF_STOCK_SELECTORS = (
    "[class*='out-of-stock']",
    "[class*='outOfStock']",
    "[class*='unavailable']",
    "[class*='sold-out']",
)

DEFAULT_OUT_OF_STOCK_PATTERN = re.compile(r"out of stock|currently unavailable|sold out", re.IGNORECASE)


@dataclass(frozen=True)
class EmbeddedState:
    """Where a storefront keeps its server-rendered JSON state.

    kind "script_id": the JSON body of ``<script id="{name}">``.
    kind "window_var": the object literal assigned to ``window.{name}``.
    """

    kind: str
    name: str


@dataclass(frozen=True)
class ExtractionRules:
    base_url: str
    container_selectors: Tuple[str, ...]
    name_selectors: Tuple[str, ...] = DEFAULT_NAME_SELECTORS
    image_attributes: Tuple[str, ...] = DEFAULT_IMAGE_ATTRIBUTES
    product_link_patterns: Tuple[str, ...] = DEFAULT_PRODUCT_LINK_PATTERNS
    out_of_stock_selectors: Tuple[str, ...] = DEFAULT_OUT_OF_STOCK_SELECTORS
    out_of_stock_pattern: re.Pattern = DEFAULT_OUT_OF_STOCK_PATTERN
    currency_pattern: re.Pattern = CURRENCY_TOKEN_PATTERN
    embedded_state: Optional[EmbeddedState] = None
    max_json_depth: int = 12


def resolve_price_tokens(text: str, pattern: re.Pattern = CURRENCY_TOKEN_PATTERN):
    """Price, MRP and discount for the currency amounts found in text."""
    return PriceNormalizer.resolve_prices(PriceNormalizer.extract_currency_tokens(text, pattern))


def extract_detail_image(html: str, base_url: str) -> Optional[str]:
    """Main product image of a detail page: og:image first, then page images."""
    soup = BeautifulSoup(html, "html.parser")
    for attrs in ({"property": "og:image"}, {"name": "og:image"}, {"name": "twitter:image"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            return absolute_url(base_url, meta["content"])

    for selector in ("[class*='product'] img", "main img", "img"):
        for img in soup.select(selector):
            src = img.get("src") or img.get("data-src") or first_srcset_url(img.get("srcset"))
            if src and not src.startswith("data:"):
                return absolute_url(base_url, src)
    return None


class ProductExtractor:
    """Applies one storefront's ExtractionRules to rendered HTML."""

    def __init__(self, rules: ExtractionRules, website: str = ""):
        self.rules = rules
        self.website = website
        self.normalizer = ResultNormalizer(rules.base_url)
        self.logger = logger.bind(website=website)

    def extract(self, html: str, location: str, product: str) -> ExtractionResult:
        return ExtractionResult(
            website=self.website,
            location=location,
            product=product,
            products=self.extract_records(html),
        )

    def extract_records(self, html: str) -> List[ProductRecord]:
        """Container strategies first, embedded JSON state as fallback."""
        soup = BeautifulSoup(html, "html.parser")

        records = self._from_containers(soup)
        if records:
            return records

        if self.rules.embedded_state is not None:
            records = self._from_embedded_state(soup)
            if records:
                self.logger.info("embedded_state_used", count=len(records))
        return records

    # ------------------------------------------------------------------
    # Container strategy
    # ------------------------------------------------------------------

    def _from_containers(self, soup: BeautifulSoup) -> List[ProductRecord]:
        for selector in self.rules.container_selectors:
            containers = soup.select(selector)
            if not containers:
                continue

            records = []
            for container in containers:
                record = self.parse_container(container)
                if record:
                    records.append(record)

            self.logger.debug(
                "container_selector_tried",
                selector=selector,
                containers=len(containers),
                records=len(records),
            )
            if records:
                return records
        return []

    def parse_container(self, container: Tag) -> Optional[ProductRecord]:
        """Build a record from one product card, None when it does not qualify."""
        name = self._find_name(container)
        if not name:
            return None

        price, mrp, discount = resolve_price_tokens(
            container.get_text(" ", strip=True), self.rules.currency_pattern
        )
        if price is None:
            return None

        product_url = self._find_product_url(container)
        try:
            return ProductRecord(
                name=name,
                price=price,
                mrp=mrp,
                discount=discount,
                discount_amount=discount,
                is_out_of_stock=self._is_out_of_stock(container),
                image_url=self._find_image(container),
                product_url=normalize_url(product_url) if product_url else None,
            )
        except ValueError:
            return None

    def _find_name(self, container: Tag) -> Optional[str]:
        for selector in self.rules.name_selectors:
            for node in container.select(selector):
                candidate = " ".join(node.get_text(" ", strip=True).split())
                if not candidate and node.name == "a":
                    candidate = node.get("title", "")
                if is_valid_name(candidate) and not PriceNormalizer.extract_currency_tokens(candidate):
                    return candidate

        img = container.find("img")
        if img:
            for attr in ("alt", "title"):
                candidate = " ".join((img.get(attr) or "").split())
                if is_valid_name(candidate):
                    return candidate
        return None

    def _find_image(self, container: Tag) -> Optional[str]:
        img = container.find("img")
        if not img:
            return None
        for attr in self.rules.image_attributes:
            value = img.get(attr)
            if not value:
                continue
            if "srcset" in attr:
                value = first_srcset_url(value)
            if value and not value.startswith("data:"):
                return absolute_url(self.rules.base_url, value)
        return None

    def _find_product_url(self, container: Tag) -> Optional[str]:
        links = []
        if container.name == "a" and container.get("href"):
            links.append(container)
        links.extend(container.select("a[href]"))
        if not links and container.parent is not None and container.parent.name == "a":
            links.append(container.parent)

        for link in links:
            href = link.get("href", "")
            if any(pattern in href for pattern in self.rules.product_link_patterns):
                return absolute_url(self.rules.base_url, href)
        for link in links:
            url = absolute_url(self.rules.base_url, link.get("href"))
            if url:
                return url
        return None

    def _is_out_of_stock(self, container: Tag) -> bool:
        for selector in self.rules.out_of_stock_selectors:
            if container.select_one(selector) is not None:
                return True
        return bool(self.rules.out_of_stock_pattern.search(container.get_text(" ", strip=True)))

    # ------------------------------------------------------------------
    # Embedded JSON state
    # ------------------------------------------------------------------

    def _load_embedded_state(self, soup: BeautifulSoup) -> Optional[Any]:
        state = self.rules.embedded_state
        if state.kind == "script_id":
            script = soup.find("script", id=state.name)
            if not script or not script.string:
                return None
            try:
                return json.loads(script.string)
            except json.JSONDecodeError as e:
                self.logger.warning("embedded_state_invalid", source=state.name, error=str(e))
                return None

        marker = re.compile(rf"window\.{re.escape(state.name)}\s*=\s*")
        for script in soup.find_all("script"):
            body = script.string or ""
            match = marker.search(body)
            if not match:
                continue
            try:
                value, _ = json.JSONDecoder().raw_decode(body, match.end())
                return value
            except json.JSONDecodeError as e:
                self.logger.warning("embedded_state_invalid", source=state.name, error=str(e))
                return None
        return None

    def _walk(self, node: Any, depth: int = 0) -> Iterator[dict]:
        if depth > self.rules.max_json_depth:
            return
        if isinstance(node, dict):
            has_name = any(isinstance(node.get(k), str) for k in ResultNormalizer.NAME_KEYS)
            has_price = any(node.get(k) is not None for k in ResultNormalizer.PRICE_KEYS + ResultNormalizer.MRP_KEYS)
            if has_name and has_price:
                yield node
                return
            for value in node.values():
                yield from self._walk(value, depth + 1)
        elif isinstance(node, list):
            for value in node:
                yield from self._walk(value, depth + 1)

    def _from_embedded_state(self, soup: BeautifulSoup) -> List[ProductRecord]:
        state = self._load_embedded_state(soup)
        if state is None:
            return []
        records = []
        for item in self._walk(state):
            record = self.normalizer.from_raw(item)
            if record:
                records.append(record)
        return records
