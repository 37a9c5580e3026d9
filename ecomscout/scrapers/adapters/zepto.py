"""Zepto (zepto.com) site adapter."""

from urllib.parse import quote_plus

from ecomscout.scrapers.base import BaseSiteAdapter
from ecomscout.scrapers.extraction import ExtractionRules
from ecomscout.scrapers.selector_engine import SiteLocators, css, text, xpath


class ZeptoAdapter(BaseSiteAdapter):
    """Zepto location selection and search results.

    Zepto applies the address as soon as a suggestion is clicked, so there
    is no confirm step.
    """

    site_slug = "zepto"
    site_name = "Zepto"
    base_url = "https://www.zepto.com"
    aliases = ("zeptonow", "zepto now")

    locators = SiteLocators(
        location_trigger=(
            xpath('//*[contains(text(), "Select Location")]', 1),
            text("Select Location", 2),
            css('button:has-text("Select Location")', 3),
            xpath('//button[contains(text(), "Location")]', 4),
            xpath('//*[contains(text(), "Location")]', 5),
        ),
        location_input=(
            css('input[placeholder*="search a new address" i]', 1),
            css('input[placeholder*="search" i]', 2),
            css('[role="dialog"] input[type="text"]', 3),
        ),
        suggestion_items=(
            css('[data-testid="address-search-item"]', 1),
            css('[data-testid*="address"]', 2),
            css('[role="dialog"] [role="button"]', 3),
            css('[role="dialog"] div > div', 4, "broad dialog rows"),
        ),
        confirm_button=(),
    )

    extraction_rules = ExtractionRules(
        base_url="https://www.zepto.com",
        container_selectors=(
            "a[href*='/pn/']",
            "[data-testid='product-card']",
            "[class*='product-card']",
        ),
        product_link_patterns=("/pn/",),
    )

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/search?query={quote_plus(query)}"
