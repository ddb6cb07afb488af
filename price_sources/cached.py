"""
Cached Price Source - caches current prices per (chain, token).

Historical prices never change once observed and are cheap to ask for in
bulk, so they are passed straight through.
"""

import logging
from typing import Mapping, Optional, Sequence

from price_sources.base import BasePriceSource, validate_query
from price_sources.models import (
    PriceQuery,
    PriceQuerySupport,
    PriceResult,
    PricesByChain,
    TokenAddress,
)
from source_core.cache import CacheConfig, ConcurrentLRUCache
from source_core.chains import ChainId
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)

PriceKey = tuple[ChainId, TokenAddress]


class CachedPriceSource(BasePriceSource):
    """
    Usage:
        cached = CachedPriceSource(aggregator, CacheConfig(use_cached_value="30s"))
        prices = await cached.get_current_prices({1: [WETH]})
    """

    def __init__(self, source: BasePriceSource, config: CacheConfig) -> None:
        self._source = source
        self._cache: ConcurrentLRUCache[PriceKey, PriceResult] = ConcurrentLRUCache(
            calculate=self._fetch_current_prices,
            config=config,
            name=f"cached-{source.name}",
        )

    @property
    def name(self) -> str:
        return f"cached-{self._source.name}"

    @property
    def cache(self) -> ConcurrentLRUCache[PriceKey, PriceResult]:
        return self._cache

    def supported_queries(self) -> PriceQuerySupport:
        return self._source.supported_queries()

    async def get_current_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        validate_query(self.supported_queries(), list(addresses), PriceQuery.CURRENT_PRICES)

        keys = [(chain_id, token) for chain_id, tokens in addresses.items() for token in tokens]
        cached = await self._cache.get_or_calculate(keys, timeout=timeout)

        result: PricesByChain = {}
        for (chain_id, token), price in cached.items():
            result.setdefault(chain_id, {})[token] = price
        return result

    async def get_historical_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timestamp: int,
        search_width: Optional[TimeString] = None,
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        return await self._source.get_historical_prices(addresses, timestamp, search_width, timeout)

    async def _fetch_current_prices(self, keys: list[PriceKey]) -> dict[PriceKey, PriceResult]:
        addresses: dict[ChainId, list[TokenAddress]] = {}
        for chain_id, token in keys:
            addresses.setdefault(chain_id, []).append(token)

        prices = await self._source.get_current_prices(addresses)

        result: dict[PriceKey, PriceResult] = {}
        for chain_id, token in keys:
            price = prices.get(chain_id, {}).get(token)
            if price is not None:
                result[(chain_id, token)] = price
        return result
