"""D-Mart (dmart.in) site adapter.

D-Mart asks for a pincode/area before showing prices. The location picker
is a dialog opened from the header's location widget; a suggestion click
must be followed by an explicit CONFIRM. Product cards are Next.js rendered
and the same data is available in ``__NEXT_DATA__``.
"""

from urllib.parse import quote_plus

from ecomscout.scrapers.base import BaseSiteAdapter
from ecomscout.scrapers.extraction import (
    DEFAULT_NAME_SELECTORS,
    DEFAULT_OUT_OF_STOCK_SELECTORS,
    EmbeddedState,
    ExtractionRules,
)
from ecomscout.scrapers.selector_engine import SiteLocators, css, text, xpath


class DMartAdapter(BaseSiteAdapter):
    """D-Mart location selection and search results."""

    site_slug = "dmart"
    site_name = "D-Mart"
    base_url = "https://www.dmart.in"
    aliases = ("d-mart", "d mart")

    # Product pages carry the full-size image; cards often only have a
    # background-image placeholder.
    enrich_from_details = True

    locators = SiteLocators(
        location_trigger=(
            xpath('//*[contains(@class, "location") or contains(@id, "location")]', 1, "header location widget"),
            css('*[class*="location" i]', 2, "any location-ish element"),
            text("Select Location", 3),
        ),
        location_input=(
            css('div[role="dialog"] input[type="text"]', 1, "pincode dialog input"),
            css('input[id="scrInput"]', 2),
            css('div[role="dialog"] input', 3),
        ),
        suggestion_items=(
            css('div[role="dialog"] ul li', 1),
            css('div[role="dialog"] [role="option"]', 2),
            css('div[role="dialog"] li', 3),
            css('ul li', 4, "any list item"),
        ),
        confirm_button=(
            xpath(
                '//button[contains(translate(text(), "ABCDEFGHIJKLMNOPQRSTUVWXYZ", '
                '"abcdefghijklmnopqrstuvwxyz"), "confirm")]',
                1,
            ),
            css('button:has-text("CONFIRM")', 2),
            css('button:has-text("Confirm")', 3),
        ),
    )

    extraction_rules = ExtractionRules(
        base_url="https://www.dmart.in",
        container_selectors=(
            "[class*='vertical-card_card-vertical']",
            "[class*='stretched-card']",
            "[class*='vertical-card']",
            "[class*='product']",
        ),
        name_selectors=("[class*='vertical-card_title']",) + DEFAULT_NAME_SELECTORS,
        product_link_patterns=("/product",),
        out_of_stock_selectors=("[class*='no-stock']",) + DEFAULT_OUT_OF_STOCK_SELECTORS,
        embedded_state=EmbeddedState(kind="script_id", name="__NEXT_DATA__"),
    )

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/search?searchTerm={quote_plus(query)}"
