"""Nature's Basket (naturesbasket.co.in) site adapter."""

from urllib.parse import quote_plus

from ecomscout.scrapers.base import BaseSiteAdapter
from ecomscout.scrapers.extraction import ExtractionRules
from ecomscout.scrapers.selector_engine import SiteLocators, css, xpath

_LOWER = "'abcdefghijklmnopqrstuvwxyz'"
_UPPER = "'ABCDEFGHIJKLMNOPQRSTUVWXYZ'"


class NaturesBasketAdapter(BaseSiteAdapter):
    """Nature's Basket location selection and search results."""

    site_slug = "naturesbasket"
    site_name = "Nature's Basket"
    base_url = "https://www.naturesbasket.co.in"
    aliases = ("nature's basket", "natures basket", "natures-basket", "nature basket")

    # The picker lists "Type to search" and "Select" helper rows
    extra_exclusions = ("type", "select")

    locators = SiteLocators(
        location_trigger=(
            xpath('//*[contains(text(), "Select Location")]', 1),
            xpath(f'//*[contains(translate(text(), {_UPPER}, {_LOWER}), "select location")]', 2),
            xpath('//*[contains(text(), "Location") and not(contains(text(), "Delivering"))]', 3),
            xpath('//*[@data-testid*="location" or @data-testid*="Location"]', 4),
            xpath('//*[contains(@class, "location") and (self::button or self::div or self::span)]', 5),
        ),
        location_input=(
            xpath(f'//input[@placeholder and contains(translate(@placeholder, {_UPPER}, {_LOWER}), "enter")]', 1),
            xpath(f'//input[@placeholder and contains(translate(@placeholder, {_UPPER}, {_LOWER}), "area")]', 2),
            css('div[role="dialog"] input[type="text"]', 3),
            css('[class*="modal"] input[type="text"]', 4),
            css('[class*="dialog"] input[type="text"]', 5),
        ),
        suggestion_items=(
            css('div[role="dialog"] li', 1),
            css('div[role="option"]', 2),
            css('[class*="modal"] li', 3),
            css("li", 4),
        ),
        confirm_button=(
            xpath(f"//div[@role='dialog']//button[contains(translate(., {_UPPER}, {_LOWER}), 'confirm')]", 1),
            xpath(f"//button[contains(translate(text(), {_UPPER}, {_LOWER}), 'confirm location')]", 2),
            css('button:has-text("Confirm Location")', 3),
        ),
        dismiss_overlay=(
            css('button[aria-label*="close" i]', 1),
            css('[class*="close" i]', 2),
        ),
    )

    extraction_rules = ExtractionRules(
        base_url="https://www.naturesbasket.co.in",
        container_selectors=(
            "[class*='product-card']",
            "[class*='productCard']",
            "a[href*='/product-detail/']",
            "[class*='product']",
        ),
        product_link_patterns=("/product-detail/", "/product", "/p/"),
    )

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/search?q={quote_plus(query)}"
