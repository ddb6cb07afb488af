"""
Price Sources - token prices from many providers.

Usage:
    from price_sources import AggregatorPriceSource, DefiLlamaPriceSource

    source = AggregatorPriceSource([DefiLlamaPriceSource(fetch)], "median")
    prices = await source.get_current_prices({1: [WETH]}, timeout="5s")
"""

from price_sources.aggregator import AggregatorPriceSource
from price_sources.base import BasePriceSource
from price_sources.cached import CachedPriceSource
from price_sources.models import PriceQuery, PriceResult, PricesByChain, TokenAddress
from price_sources.prioritized import PrioritizedPriceSource
from price_sources.providers.defi_llama import DefiLlamaPriceSource
from price_sources.registry import build_price_source


__all__ = [
    "PriceQuery",
    "PriceResult",
    "PricesByChain",
    "TokenAddress",
    "BasePriceSource",
    "AggregatorPriceSource",
    "PrioritizedPriceSource",
    "CachedPriceSource",
    "DefiLlamaPriceSource",
    "build_price_source",
]
