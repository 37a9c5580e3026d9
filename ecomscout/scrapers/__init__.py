"""Browser automation for storefront location selection and product extraction.

This package provides:
- The site adapter base class and its location-selection state machine
- Locator resolution, suggestion disambiguation and HTML extraction
- Factory for creating adapter instances by slug or alias
- The job orchestrator that runs adapters in the background
"""

from .records import ExtractionResult, ProductRecord
from .base import AdapterState, BaseSiteAdapter
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Records
    "ProductRecord",
    "ExtractionResult",
    # Base classes
    "AdapterState",
    "BaseSiteAdapter",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
