"""Factory for creating and managing site adapter instances."""

import re
from typing import Dict, List, Type

import structlog

from ecomscout.core.exceptions import UnsupportedWebsiteError
from ecomscout.scrapers.base import BaseSiteAdapter


logger = structlog.get_logger(__name__)


def _name_key(name: str) -> str:
    """'  Nature’s  Basket ' -> "nature's basket"."""
    name = name.replace("’", "'").replace("‘", "'")
    return re.sub(r"\s+", " ", name.strip().lower())


class AdapterFactory:
    """Registry of adapter classes keyed by site slug and alias.

    A new adapter instance is created for every run, so no state leaks
    between jobs or retries.
    """

    def __init__(self):
        """Initialize the adapter factory."""
        self._adapter_registry: Dict[str, Type[BaseSiteAdapter]] = {}
        self._aliases: Dict[str, str] = {}

    def register_adapter(self, site_slug: str, adapter_class: Type[BaseSiteAdapter]) -> None:
        """Register an adapter class and its aliases.

        Args:
            site_slug: Site slug identifier (e.g., "dmart")
            adapter_class: Adapter class (must inherit from BaseSiteAdapter)
        """
        if not isinstance(adapter_class, type) or not issubclass(adapter_class, BaseSiteAdapter):
            raise ValueError(f"Adapter class must inherit from BaseSiteAdapter: {adapter_class}")

        slug = _name_key(site_slug)
        self._adapter_registry[slug] = adapter_class
        for alias in (slug, adapter_class.site_name, *adapter_class.aliases):
            if alias:
                self._aliases[_name_key(alias)] = slug
        logger.debug("adapter_registered", site_slug=slug, adapter_class=adapter_class.__name__)

    def resolve_site(self, name: str) -> str:
        """Map a slug, display name or alias to the registered slug.

        Raises:
            UnsupportedWebsiteError: Name matches nothing registered
        """
        slug = self._aliases.get(_name_key(name or ""))
        if slug is None:
            raise UnsupportedWebsiteError(name, self.get_registered_sites())
        return slug

    def get_adapter_class(self, name: str) -> Type[BaseSiteAdapter]:
        return self._adapter_registry[self.resolve_site(name)]

    def create_adapter(self, name: str, **kwargs) -> BaseSiteAdapter:
        """Create a configured adapter instance.

        Args:
            name: Site slug or alias
            **kwargs: Passed to the adapter constructor (timings, diagnostics, ...)

        Raises:
            UnsupportedWebsiteError: Name matches nothing registered
        """
        adapter = self.get_adapter_class(name)(**kwargs)
        logger.debug("adapter_created", site_slug=adapter.site_slug)
        return adapter

    def get_registered_sites(self) -> List[str]:
        """Get list of registered site slugs.

        Returns:
            List of site slug strings, in registration order
        """
        return list(self._adapter_registry.keys())

    def has_adapter(self, name: str) -> bool:
        """Check if a name resolves to a registered adapter."""
        return _name_key(name or "") in self._aliases


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance.

    Returns:
        AdapterFactory instance
    """
    return adapter_factory
