"""
Alchemy Provider Source - Alchemy hosted nodes.

Urls have the shape {protocol}://{network}.g.alchemy.com/v2/{api key}.
"""

import logging
from typing import Iterable, Optional

from provider_sources.base import BaseProviderSource
from provider_sources.models import ProviderClient, ProviderClientSupport, RpcEndpoint
from source_core.chains import Chain, ChainId
from source_core.exceptions import ConfigurationError, UnsupportedChainError


logger = logging.getLogger(__name__)


ALCHEMY_NETWORKS = {
    Chain.ETHEREUM: "eth-mainnet",
    Chain.OPTIMISM: "opt-mainnet",
    Chain.POLYGON: "polygon-mainnet",
    Chain.BASE: "base-mainnet",
    Chain.ARBITRUM: "arb-mainnet",
}

PROTOCOL_CLIENTS = {
    "https": ProviderClient.HTTP,
    "wss": ProviderClient.WEBSOCKET,
}


def alchemy_supported_chains() -> list[ChainId]:
    return [int(chain_id) for chain_id in ALCHEMY_NETWORKS]


def build_alchemy_url(api_key: str, protocol: str, chain_id: ChainId) -> str:
    network = ALCHEMY_NETWORKS.get(chain_id)
    if network is None:
        raise UnsupportedChainError(chain_id, source_name="alchemy")
    return f"{protocol}://{network}.g.alchemy.com/v2/{api_key}"


class AlchemyProviderSource(BaseProviderSource):
    """
    Usage:
        source = AlchemyProviderSource(api_key, protocol="https")
        endpoint = source.get_provider(chain_id=1)
    """

    def __init__(
        self,
        api_key: str,
        protocol: str = "https",
        on_chains: Optional[Iterable[ChainId]] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Alchemy API key is required", source_name="alchemy", config_key="alchemy_api_key")
        if protocol not in PROTOCOL_CLIENTS:
            raise ConfigurationError(
                f"Unsupported protocol {protocol!r}, expected one of {', '.join(PROTOCOL_CLIENTS)}",
                source_name="alchemy",
                config_key="protocol",
            )

        chains = [int(chain_id) for chain_id in on_chains] if on_chains is not None else alchemy_supported_chains()
        unknown = [chain_id for chain_id in chains if chain_id not in ALCHEMY_NETWORKS]
        if unknown:
            raise ConfigurationError(
                f"Alchemy does not serve chains {unknown}",
                source_name="alchemy",
                config_key="on_chains",
            )

        self._api_key = api_key
        self._protocol = protocol
        self._client = PROTOCOL_CLIENTS[protocol]
        self._chains = chains

    @property
    def name(self) -> str:
        return "alchemy"

    def supported_clients(self) -> ProviderClientSupport:
        return {chain_id: frozenset({self._client}) for chain_id in self._chains}

    def get_provider(
        self,
        chain_id: ChainId,
        client: ProviderClient = ProviderClient.HTTP,
    ) -> RpcEndpoint:
        if not self.supports(chain_id, client):
            raise UnsupportedChainError(chain_id, source_name=self.name)
        return RpcEndpoint(
            chain_id=chain_id,
            url=build_alchemy_url(self._api_key, self._protocol, chain_id),
            client=client,
        )
