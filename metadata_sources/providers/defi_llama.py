"""
DefiLlama Metadata Source - decimals and symbols from the coins API.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from metadata_sources.base import BaseMetadataSource
from metadata_sources.models import MetadataByChain, MetadataField, TokenAddress
from price_sources.providers.defi_llama import DefiLlamaPriceSource
from source_core.chains import ChainId
from source_core.exceptions import SourceError
from source_core.fetch import FetchService
from source_core.models import FieldsRequirements, SupportLevel, SupportRecord
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


class DefiLlamaMetadataSource(BaseMetadataSource):

    BASE_URL = DefiLlamaPriceSource.BASE_URL
    CHAIN_KEYS = DefiLlamaPriceSource.CHAIN_KEYS

    def __init__(self, fetch_service: FetchService, base_url: str = BASE_URL) -> None:
        self._fetch = fetch_service
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "defi_llama-metadata"

    def supported_properties(self) -> dict[ChainId, SupportRecord]:
        support = {
            MetadataField.DECIMALS: SupportLevel.PRESENT,
            MetadataField.SYMBOL: SupportLevel.PRESENT,
        }
        return {int(chain_id): dict(support) for chain_id in self.CHAIN_KEYS}

    async def get_metadata(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> MetadataByChain:
        coins: dict[str, tuple[ChainId, TokenAddress]] = {}
        for chain_id, tokens in addresses.items():
            key = self.CHAIN_KEYS.get(chain_id)
            if key is None:
                continue
            for token in tokens:
                coins[f"{key}:{token}".lower()] = (int(chain_id), token)
        if not coins:
            return {}

        data = await self._fetch.fetch_json(
            f"{self._base_url}/prices/current/{','.join(coins)}",
            timeout=timeout,
            source_name=self.name,
        )
        return self.normalize(data, coins)

    def normalize(self, data: Any, coins: dict[str, tuple[ChainId, TokenAddress]]) -> MetadataByChain:
        if not isinstance(data, dict) or not isinstance(data.get("coins"), dict):
            raise SourceError(f"Unexpected coins response: {data!r}"[:300], source_name=self.name)

        result: MetadataByChain = {}
        for coin_id, token_data in data["coins"].items():
            requested = coins.get(coin_id.lower())
            if requested is None or not isinstance(token_data, dict):
                continue
            metadata = {}
            if isinstance(token_data.get("decimals"), int):
                metadata[MetadataField.DECIMALS] = token_data["decimals"]
            if isinstance(token_data.get("symbol"), str):
                metadata[MetadataField.SYMBOL] = token_data["symbol"]
            if metadata:
                chain_id, token = requested
                result.setdefault(chain_id, {})[token] = metadata
        return result
