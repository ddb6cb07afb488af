"""
Base Provider Source - Abstract interface for RPC provider sources.
"""

from abc import ABC, abstractmethod

from provider_sources.models import ProviderClient, ProviderClientSupport, RpcEndpoint
from source_core.chains import ChainId


class BaseProviderSource(ABC):
    """
    Abstract base class for provider sources.

    Each source must:
    1. Provide a unique name
    2. Implement supported_clients() - chain -> frozenset of ProviderClient
    3. Implement get_provider() - endpoint for a chain and client
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def supported_clients(self) -> ProviderClientSupport:
        pass

    @abstractmethod
    def get_provider(
        self,
        chain_id: ChainId,
        client: ProviderClient = ProviderClient.HTTP,
    ) -> RpcEndpoint:
        """
        Raises:
            UnsupportedChainError: If the chain or client is not supported
        """
        pass

    def supported_chains(self) -> list[ChainId]:
        return [int(chain_id) for chain_id in self.supported_clients()]

    def supports(self, chain_id: ChainId, client: ProviderClient = ProviderClient.HTTP) -> bool:
        return client in self.supported_clients().get(chain_id, frozenset())

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
