"""JioMart (jiomart.com) site adapter."""

from urllib.parse import quote_plus

from ecomscout.scrapers.base import BaseSiteAdapter
from ecomscout.scrapers.extraction import DEFAULT_NAME_SELECTORS, ExtractionRules
from ecomscout.scrapers.selector_engine import SiteLocators, css, xpath


class JioMartAdapter(BaseSiteAdapter):
    """JioMart location selection and search results.

    The delivery-location panel has no reliable confirm button on every
    layout; pressing Enter in the input applies the selected area.
    """

    site_slug = "jiomart"
    site_name = "JioMart"
    base_url = "https://www.jiomart.com"
    aliases = ("jeomart", "jio mart", "jio-mart")

    confirm_with_enter = True

    locators = SiteLocators(
        location_trigger=(
            xpath("//button[contains(text(), 'Location')]", 1),
            xpath("//*[contains(@class, 'delivery') and contains(@class, 'location')]", 2),
            xpath("//*[contains(text(), 'Deliver to') or contains(text(), 'Select Location')]", 3),
            css("[class*='location' i]", 4),
        ),
        location_input=(
            xpath("//input[contains(@placeholder, 'Search for area') or contains(@placeholder, 'landmark')]", 1),
            css("input[placeholder*='pincode' i]", 2),
            css("[role='dialog'] input[type='text']", 3),
        ),
        suggestion_items=(
            xpath(
                "//ul[li and (contains(@class, 'suggestion') or contains(@class, 'dropdown') "
                "or contains(@class, 'list') or contains(@class, 'location'))]//li",
                1,
            ),
            xpath("//div[contains(@class, 'suggestion') or contains(@class, 'autocomplete')]//li", 2),
            css("[role='listbox'] [role='option']", 3),
            xpath("//div[contains(@class, 'location')]//li", 4),
            css("[role='option']", 5),
        ),
        confirm_button=(
            xpath(
                "//button[contains(translate(., 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', "
                "'abcdefghijklmnopqrstuvwxyz'), 'confirm')]",
                1,
            ),
            css("button:has-text('Confirm Location')", 2),
        ),
    )

    extraction_rules = ExtractionRules(
        base_url="https://www.jiomart.com",
        container_selectors=(
            "[class*='plp-card-container']",
            "[class*='jm-product']",
            "[class*='item-card']",
            "[data-testid*='product']",
            "[class*='product']",
        ),
        name_selectors=(
            "[class*='plp-card-details-name']",
            "[class*='product-title']",
            "[class*='product-name']",
            "[class*='item-title']",
            "[data-testid*='title']",
            "[data-testid*='name']",
        )
        + DEFAULT_NAME_SELECTORS,
        product_link_patterns=("/p/", "/product"),
    )

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/search?q={quote_plus(query)}"
