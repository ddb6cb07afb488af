"""
Prioritized Price Source - sequential fallback per token.

Sources are asked in the order given. Each one is only asked about the
tokens that are still missing on chains it supports, so a later source
fills in what earlier ones could not price.
"""

import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from price_sources.base import BasePriceSource, filter_addresses, validate_query
from price_sources.models import (
    PriceQuery,
    PriceQuerySupport,
    PricesByChain,
    TokenAddress,
)
from source_core.chains import ChainId
from source_core.exceptions import AllSourcesFailedError, NoSourcesError
from source_core.requirements import combine_capabilities
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class PrioritizedPriceSource(BasePriceSource):
    """Falls back to the next source for every token left unpriced."""

    def __init__(self, sources: Sequence[BasePriceSource], name: str = "prioritized-prices") -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def supported_queries(self) -> PriceQuerySupport:
        return combine_capabilities(source.supported_queries() for source in self._sources)

    async def get_current_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        return await self._fall_back(
            PriceQuery.CURRENT_PRICES,
            addresses,
            timeout,
            lambda source, subset: source.get_current_prices(subset, timeout),
        )

    async def get_historical_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timestamp: int,
        search_width: Optional[TimeString] = None,
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        return await self._fall_back(
            PriceQuery.HISTORICAL_PRICES,
            addresses,
            timeout,
            lambda source, subset: source.get_historical_prices(subset, timestamp, search_width, timeout),
        )

    async def _fall_back(
        self,
        query: PriceQuery,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString],
        call: Callable[[BasePriceSource, dict[ChainId, list[TokenAddress]]], Awaitable[PricesByChain]],
    ) -> PricesByChain:
        validate_query(self.supported_queries(), list(addresses), query)

        remaining = {chain_id: list(dict.fromkeys(tokens)) for chain_id, tokens in addresses.items() if tokens}
        result: PricesByChain = {}
        failures: dict[str, Exception] = {}
        attempted = 0

        for source in self._sources:
            subset = filter_addresses(source, remaining, query)
            if not subset:
                continue
            attempted += 1
            try:
                prices = await with_timeout(call(source, subset), timeout, description=f"{source.name} {query.value}")
            except Exception as e:
                logger.warning(f"[{source.name}] Failed to fetch {query.value}, falling back: {e}")
                failures[source.name] = e
                continue

            for chain_id, tokens in subset.items():
                by_token = (prices or {}).get(chain_id, {})
                for token in tokens:
                    price = by_token.get(token)
                    if price is not None and price.is_valid():
                        result.setdefault(chain_id, {})[token] = price
                        remaining[chain_id].remove(token)
            remaining = {chain_id: tokens for chain_id, tokens in remaining.items() if tokens}
            if not remaining:
                break

        if attempted and len(failures) == attempted:
            logger.error(f"[{self.name}] All sources failed to fetch {query.value}")
            raise AllSourcesFailedError(
                f"Failed to fetch {query.value} on all sources",
                failures=failures,
            )
        return result
