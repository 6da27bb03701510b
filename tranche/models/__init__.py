"""Database models."""

from tranche.models.instrument import Instrument
from tranche.models.trade import Trade
from tranche.models.settlement import Settlement
from tranche.models.price_cache import PriceCacheEntry

__all__ = [
    "Instrument",
    "Trade",
    "Settlement",
    "PriceCacheEntry",
]
