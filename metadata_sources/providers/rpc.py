"""
RPC Metadata Source - ERC-20 metadata read straight from nodes.

Calls decimals(), symbol() and name() on each token. Some old tokens return
bytes32 instead of a string for symbol/name; both encodings are accepted.
The native token is answered from a static table.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence

from balance_sources.models import is_native_token
from metadata_sources.base import BaseMetadataSource
from metadata_sources.models import (
    MetadataByChain,
    MetadataField,
    TokenAddress,
    TokenMetadata,
)
from provider_sources.base import BaseProviderSource
from provider_sources.models import ProviderClient
from provider_sources.rpc import JsonRpcClient
from source_core.chains import Chain, ChainId
from source_core.fetch import FetchService
from source_core.models import FieldsRequirements, SupportLevel, SupportRecord
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


SELECTORS = {
    MetadataField.DECIMALS: "0x313ce567",
    MetadataField.SYMBOL: "0x95d89b41",
    MetadataField.NAME: "0x06fdde03",
}

NATIVE_METADATA = {
    Chain.ETHEREUM: ("ETH", "Ether"),
    Chain.OPTIMISM: ("ETH", "Ether"),
    Chain.BNB_CHAIN: ("BNB", "BNB"),
    Chain.GNOSIS: ("xDAI", "xDAI"),
    Chain.POLYGON: ("MATIC", "Matic"),
    Chain.FANTOM: ("FTM", "Fantom"),
    Chain.BASE: ("ETH", "Ether"),
    Chain.ARBITRUM: ("ETH", "Ether"),
    Chain.AVALANCHE: ("AVAX", "Avalanche"),
}


def decode_uint(result: str) -> int:
    return int(result, 16)


def decode_string(result: str) -> str:
    """
    Decode an ABI encoded string (or bytes32) return value.

    Raises:
        ValueError: If the value is neither
    """
    data = bytes.fromhex(result.removeprefix("0x"))
    if len(data) == 32:
        return data.rstrip(b"\x00").decode("utf-8", errors="replace")
    if len(data) < 64:
        raise ValueError(f"Not an ABI encoded string: {result!r}")
    offset = int.from_bytes(data[:32], "big")
    length = int.from_bytes(data[offset:offset + 32], "big")
    start = offset + 32
    if start + length > len(data):
        raise ValueError(f"Truncated ABI encoded string: {result!r}")
    return data[start:start + length].decode("utf-8", errors="replace")


DECODERS = {
    MetadataField.DECIMALS: decode_uint,
    MetadataField.SYMBOL: decode_string,
    MetadataField.NAME: decode_string,
}


class RpcMetadataSource(BaseMetadataSource):

    def __init__(self, provider_source: BaseProviderSource, fetch_service: FetchService) -> None:
        self._providers = provider_source
        self._fetch = fetch_service

    @property
    def name(self) -> str:
        return "rpc-metadata"

    def supported_properties(self) -> dict[ChainId, SupportRecord]:
        support = {
            MetadataField.DECIMALS: SupportLevel.PRESENT,
            MetadataField.SYMBOL: SupportLevel.PRESENT,
            MetadataField.NAME: SupportLevel.OPTIONAL,
        }
        return {
            int(chain_id): dict(support)
            for chain_id, clients in self._providers.supported_clients().items()
            if ProviderClient.HTTP in clients
        }

    async def get_metadata(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> MetadataByChain:
        chain_ids = [chain_id for chain_id, tokens in addresses.items() if tokens]
        outcomes = await asyncio.gather(
            *(self._fetch_in_chain(chain_id, list(addresses[chain_id]), timeout) for chain_id in chain_ids),
            return_exceptions=True,
        )

        result: MetadataByChain = {}
        for chain_id, outcome in zip(chain_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{self.name}] Failed to fetch metadata on chain {chain_id}: {outcome}")
                continue
            result[int(chain_id)] = outcome
        return result

    async def _fetch_in_chain(
        self,
        chain_id: ChainId,
        tokens: list[TokenAddress],
        timeout: Optional[TimeString],
    ) -> dict[TokenAddress, TokenMetadata]:
        client = JsonRpcClient(self._fetch, self._providers.get_provider(chain_id, ProviderClient.HTTP))
        result: dict[TokenAddress, TokenMetadata] = {}

        erc20_tokens = []
        for token in tokens:
            if is_native_token(token):
                native = NATIVE_METADATA.get(chain_id)
                if native is not None:
                    symbol, name = native
                    result[token] = {
                        MetadataField.DECIMALS: 18,
                        MetadataField.SYMBOL: symbol,
                        MetadataField.NAME: name,
                    }
            else:
                erc20_tokens.append(token)

        calls = [(token, field) for token in erc20_tokens for field in SELECTORS]
        outcomes = await asyncio.gather(
            *(
                client.request("eth_call", [{"to": token, "data": SELECTORS[field]}, "latest"], timeout=timeout)
                for token, field in calls
            ),
            return_exceptions=True,
        )
        for (token, field), outcome in zip(calls, outcomes):
            value = self._decode(field, outcome)
            if value is not None:
                result.setdefault(token, {})[field] = value
        return result

    def _decode(self, field: MetadataField, outcome: Any) -> Any:
        if isinstance(outcome, BaseException) or not isinstance(outcome, str) or outcome in ("0x", ""):
            return None
        try:
            return DECODERS[field](outcome)
        except ValueError as e:
            logger.debug(f"[{self.name}] Could not decode {field.value}: {e}")
            return None
