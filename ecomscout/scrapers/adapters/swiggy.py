"""Swiggy Instamart (swiggy.com/instamart) site adapter.

Instamart shares its session with the rest of Swiggy and reacts badly to
several concurrent sessions from one browser, so it runs on its own after
the parallel batch.
"""

from urllib.parse import quote_plus

from ecomscout.scrapers.base import BaseSiteAdapter
from ecomscout.scrapers.extraction import EmbeddedState, ExtractionRules
from ecomscout.scrapers.selector_engine import SiteLocators, css, xpath


class SwiggyInstamartAdapter(BaseSiteAdapter):
    """Swiggy Instamart location selection and search results."""

    site_slug = "swiggy"
    site_name = "Swiggy Instamart"
    base_url = "https://www.swiggy.com"
    aliases = ("instamart", "swiggy instamart", "swiggy-instamart")

    run_isolated = True

    locators = SiteLocators(
        location_trigger=(
            xpath(
                '//*[contains(text(), "Search for an area") or contains(@placeholder, "Search for an area") '
                'or contains(@placeholder, "area or address")]',
                1,
            ),
            css('[data-testid="header-location"]', 2),
            xpath('//*[contains(text(), "Setup your precise location")]', 3),
        ),
        location_input=(
            css('input[placeholder*="area or address" i]', 1),
            css('input[placeholder*="Search for an area" i]', 2),
            xpath('//*[@role="textbox" and contains(@aria-label, "Search")]', 3),
            css('[role="dialog"] input', 4),
        ),
        suggestion_items=(
            css('[data-testid="location-search-result"]', 1),
            css('[data-testid*="search-result"]', 2),
            css('[role="dialog"] [role="button"]', 3),
            css('[role="dialog"] li', 4),
        ),
        confirm_button=(
            css('button:has-text("Confirm Location")', 1),
            css('button:has-text("Confirm")', 2),
        ),
        dismiss_overlay=(
            xpath('//button[contains(@aria-label, "Close")] | //*[@data-testid="modal-overlay"]', 1),
        ),
    )

    extraction_rules = ExtractionRules(
        base_url="https://www.swiggy.com",
        container_selectors=(
            "[data-testid='item-collection-card-full']",
            "[data-testid='item-collection-card']",
            "a[href*='/instamart/item/']",
            "[data-testid*='item']",
        ),
        product_link_patterns=("/instamart/item/", "/item"),
        embedded_state=EmbeddedState(kind="window_var", name="___INITIAL_STATE___"),
    )

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/instamart/search?custom_back=true&query={quote_plus(query)}"
