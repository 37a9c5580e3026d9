"""Storefront adapters."""

from .dmart import DMartAdapter
from .jiomart import JioMartAdapter
from .naturesbasket import NaturesBasketAdapter
from .zepto import ZeptoAdapter
from .swiggy import SwiggyInstamartAdapter

__all__ = [
    "DMartAdapter",
    "JioMartAdapter",
    "NaturesBasketAdapter",
    "ZeptoAdapter",
    "SwiggyInstamartAdapter",
]
