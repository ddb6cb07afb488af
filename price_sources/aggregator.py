"""
Aggregator Price Source - merges token prices from many sources.

Every source answering the query on a chain is asked concurrently for its
part of the request. Per (chain, token) the aggregation method picks one
whole PriceResult by price, so the reported timestamp always belongs to the
selected price.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence, Union

from price_sources.base import BasePriceSource, filter_addresses, validate_query
from price_sources.models import (
    PriceQuery,
    PriceQuerySupport,
    PriceResult,
    PricesByChain,
    TokenAddress,
)
from source_core.aggregation import AggregationMethod
from source_core.chains import ChainId
from source_core.exceptions import AllSourcesFailedError, NoSourcesError
from source_core.requirements import combine_capabilities
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)

PriceCall = Callable[[BasePriceSource, dict[ChainId, list[TokenAddress]]], Awaitable[PricesByChain]]


class AggregatorPriceSource(BasePriceSource):
    """
    Queries every supporting source and aggregates prices per token.

    Usage:
        source = AggregatorPriceSource([defi_llama, other], method="median")
        prices = await source.get_current_prices({1: [WETH, USDC]}, timeout="5s")
    """

    def __init__(
        self,
        sources: Sequence[BasePriceSource],
        method: Union[AggregationMethod, str] = AggregationMethod.MEDIAN,
        name: str = "price-aggregator",
    ) -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._method = AggregationMethod.of(method)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def method(self) -> AggregationMethod:
        return self._method

    def supported_queries(self) -> PriceQuerySupport:
        return combine_capabilities(source.supported_queries() for source in self._sources)

    async def get_current_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        return await self._aggregate(
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
        return await self._aggregate(
            PriceQuery.HISTORICAL_PRICES,
            addresses,
            timeout,
            lambda source, subset: source.get_historical_prices(subset, timestamp, search_width, timeout),
        )

    async def _aggregate(
        self,
        query: PriceQuery,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString],
        call: PriceCall,
    ) -> PricesByChain:
        validate_query(self.supported_queries(), list(addresses), query)

        requests = [
            (source, subset)
            for source in self._sources
            if (subset := filter_addresses(source, addresses, query))
        ]
        if not requests:
            return {}

        outcomes = await asyncio.gather(
            *(
                with_timeout(call(source, subset), timeout, description=f"{source.name} {query.value}")
                for source, subset in requests
            ),
            return_exceptions=True,
        )

        collected: dict[ChainId, dict[TokenAddress, list[PriceResult]]] = {}
        failures: dict[str, Exception] = {}
        for (source, subset), outcome in zip(requests, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{source.name}] Failed to fetch {query.value}: {outcome}")
                failures[source.name] = outcome
                continue
            for chain_id, tokens in subset.items():
                by_token = (outcome or {}).get(chain_id, {})
                for token in tokens:
                    result = by_token.get(token)
                    if result is not None and result.is_valid():
                        collected.setdefault(chain_id, {}).setdefault(token, []).append(result)

        if len(failures) == len(requests):
            logger.error(f"[{self.name}] All sources failed to fetch {query.value}")
            raise AllSourcesFailedError(
                f"Failed to fetch {query.value} on all sources",
                failures=failures,
            )

        return {
            chain_id: {
                token: self._method.select(results, key=lambda result: result.price)
                for token, results in by_token.items()
            }
            for chain_id, by_token in collected.items()
        }
