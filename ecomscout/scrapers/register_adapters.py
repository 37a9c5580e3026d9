"""Register all storefront adapters with the factory.

Called by the orchestrator when its factory is empty; embedding code may
also call it at startup.
"""

from typing import Optional

import structlog

from ecomscout.scrapers.factory import AdapterFactory, get_adapter_factory
from ecomscout.scrapers.adapters import (
    DMartAdapter,
    JioMartAdapter,
    NaturesBasketAdapter,
    ZeptoAdapter,
    SwiggyInstamartAdapter,
)

logger = structlog.get_logger(__name__)


# Registration order is the default dispatch order
ADAPTERS = [
    ("dmart", DMartAdapter),
    ("jiomart", JioMartAdapter),
    ("naturesbasket", NaturesBasketAdapter),
    ("zepto", ZeptoAdapter),
    ("swiggy", SwiggyInstamartAdapter),
]


def register_all_adapters(factory: Optional[AdapterFactory] = None) -> AdapterFactory:
    """Register all available adapters with the factory.

    Registering twice replaces the earlier entries.
    """
    factory = factory or get_adapter_factory()

    for site_slug, adapter_class in ADAPTERS:
        try:
            factory.register_adapter(site_slug, adapter_class)
        except ValueError as e:
            logger.error(
                "adapter_registration_failed",
                site_slug=site_slug,
                error=str(e),
            )

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sites()),
        sites=factory.get_registered_sites(),
    )
    return factory
