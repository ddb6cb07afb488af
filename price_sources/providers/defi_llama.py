"""
DefiLlama Price Source - public coins API.

Endpoints used:
- /prices/current/{coins}
- /prices/historical/{timestamp}/{coins}

Coins are addressed as "{chain key}:{token address}". No authentication
required.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from price_sources.base import BasePriceSource
from price_sources.models import (
    PriceQuery,
    PriceQuerySupport,
    PriceResult,
    PricesByChain,
    TokenAddress,
)
from source_core.chains import Chain, ChainId
from source_core.exceptions import SourceError
from source_core.fetch import FetchService
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


class DefiLlamaPriceSource(BasePriceSource):
    """
    DefiLlama coins API.

    Rate limits:
    - Not documented; requests are batched into one call per query
    """

    BASE_URL = "https://coins.llama.fi"

    # Chain id -> DefiLlama chain key
    CHAIN_KEYS = {
        Chain.ETHEREUM: "ethereum",
        Chain.OPTIMISM: "optimism",
        Chain.BNB_CHAIN: "bsc",
        Chain.GNOSIS: "xdai",
        Chain.POLYGON: "polygon",
        Chain.FANTOM: "fantom",
        Chain.BASE: "base",
        Chain.ARBITRUM: "arbitrum",
        Chain.AVALANCHE: "avax",
    }

    def __init__(self, fetch_service: FetchService, base_url: str = BASE_URL) -> None:
        self._fetch = fetch_service
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "defi_llama"

    def supported_queries(self) -> PriceQuerySupport:
        support = frozenset({PriceQuery.CURRENT_PRICES, PriceQuery.HISTORICAL_PRICES})
        return {int(chain_id): support for chain_id in self.CHAIN_KEYS}

    async def get_current_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        coins = self._coin_ids(addresses)
        if not coins:
            return {}
        data = await self._fetch.fetch_json(
            f"{self._base_url}/prices/current/{','.join(coins)}",
            timeout=timeout,
            source_name=self.name,
        )
        return self.normalize(data, coins)

    async def get_historical_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timestamp: int,
        search_width: Optional[TimeString] = None,
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        coins = self._coin_ids(addresses)
        if not coins:
            return {}
        params = {"searchWidth": search_width} if search_width else None
        data = await self._fetch.fetch_json(
            f"{self._base_url}/prices/historical/{int(timestamp)}/{','.join(coins)}",
            params=params,
            timeout=timeout,
            source_name=self.name,
        )
        return self.normalize(data, coins)

    def _coin_ids(self, addresses: Mapping[ChainId, Sequence[TokenAddress]]) -> dict[str, tuple[ChainId, TokenAddress]]:
        """Coin id (lowercased) -> the (chain, token) it was requested as."""
        coins: dict[str, tuple[ChainId, TokenAddress]] = {}
        for chain_id, tokens in addresses.items():
            key = self.CHAIN_KEYS.get(chain_id)
            if key is None:
                continue
            for token in tokens:
                coins[f"{key}:{token}".lower()] = (int(chain_id), token)
        return coins

    def normalize(
        self,
        data: Any,
        coins: dict[str, tuple[ChainId, TokenAddress]],
    ) -> PricesByChain:
        if not isinstance(data, dict) or not isinstance(data.get("coins"), dict):
            raise SourceError(f"Unexpected coins response: {data!r}"[:300], source_name=self.name)

        result: PricesByChain = {}
        for coin_id, token_data in data["coins"].items():
            requested = coins.get(coin_id.lower())
            if requested is None or not isinstance(token_data, dict):
                continue
            try:
                price = PriceResult(
                    price=float(token_data["price"]),
                    closest_timestamp=int(token_data["timestamp"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Skipping malformed price for {coin_id}: {e}")
                continue
            chain_id, token = requested
            result.setdefault(chain_id, {})[token] = price
        return result
