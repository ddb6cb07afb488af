"""
URL-based Provider Sources - fixed RPC urls.

- HttpProviderSource / WebSocketProviderSource: one url serving given chains
- PublicRpcProviderSource: well-known public endpoints, one per chain
"""

import logging
from typing import Iterable, Optional

from provider_sources.base import BaseProviderSource
from provider_sources.models import ProviderClient, ProviderClientSupport, RpcEndpoint
from source_core.chains import Chain, ChainId
from source_core.exceptions import ConfigurationError, UnsupportedChainError


logger = logging.getLogger(__name__)


class _UrlProviderSource(BaseProviderSource):

    CLIENT = ProviderClient.HTTP

    def __init__(self, url: str, chains: Iterable[ChainId], name: Optional[str] = None) -> None:
        try:
            client = ProviderClient.for_url(url)
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="url")
        if client is not self.CLIENT:
            raise ConfigurationError(
                f"{self.__class__.__name__} expects a {self.CLIENT.value} url, got {url!r}",
                config_key="url",
            )
        self._url = url
        self._chains = [int(chain_id) for chain_id in chains]
        self._name = name or f"{self.CLIENT.value}:{url.split('://', 1)[-1].split('/', 1)[0]}"

    @property
    def name(self) -> str:
        return self._name

    def supported_clients(self) -> ProviderClientSupport:
        return {chain_id: frozenset({self.CLIENT}) for chain_id in self._chains}

    def get_provider(
        self,
        chain_id: ChainId,
        client: ProviderClient = ProviderClient.HTTP,
    ) -> RpcEndpoint:
        if not self.supports(chain_id, client):
            raise UnsupportedChainError(chain_id, source_name=self.name)
        return RpcEndpoint(chain_id=chain_id, url=self._url, client=client)


class HttpProviderSource(_UrlProviderSource):
    """A single http(s) JSON-RPC url serving the given chains."""
    CLIENT = ProviderClient.HTTP


class WebSocketProviderSource(_UrlProviderSource):
    """A single ws(s) JSON-RPC url serving the given chains."""
    CLIENT = ProviderClient.WEBSOCKET


class PublicRpcProviderSource(BaseProviderSource):
    """Free public http endpoints. Rate limited; best used as a last resort."""

    PUBLIC_RPCS = {
        Chain.ETHEREUM: "https://eth.llamarpc.com",
        Chain.OPTIMISM: "https://mainnet.optimism.io",
        Chain.BNB_CHAIN: "https://bsc-dataseed.binance.org",
        Chain.GNOSIS: "https://rpc.gnosischain.com",
        Chain.POLYGON: "https://polygon-rpc.com",
        Chain.FANTOM: "https://rpc.ftm.tools",
        Chain.BASE: "https://mainnet.base.org",
        Chain.ARBITRUM: "https://arb1.arbitrum.io/rpc",
        Chain.AVALANCHE: "https://api.avax.network/ext/bc/C/rpc",
    }

    def __init__(self, on_chains: Optional[Iterable[ChainId]] = None) -> None:
        chains = list(on_chains) if on_chains is not None else list(self.PUBLIC_RPCS)
        self._urls = {int(chain_id): self.PUBLIC_RPCS[chain_id] for chain_id in chains if chain_id in self.PUBLIC_RPCS}

    @property
    def name(self) -> str:
        return "public-rpc"

    def supported_clients(self) -> ProviderClientSupport:
        return {chain_id: frozenset({ProviderClient.HTTP}) for chain_id in self._urls}

    def get_provider(
        self,
        chain_id: ChainId,
        client: ProviderClient = ProviderClient.HTTP,
    ) -> RpcEndpoint:
        if not self.supports(chain_id, client):
            raise UnsupportedChainError(chain_id, source_name=self.name)
        return RpcEndpoint(chain_id=chain_id, url=self._urls[chain_id], client=client)
