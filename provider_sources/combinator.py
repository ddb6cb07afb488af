"""
Prioritized Provider Source Combinator - first supporting source wins.

Sources are checked in the order given; no concurrency, no merging.
"""

import logging
from typing import Sequence

from provider_sources.base import BaseProviderSource
from provider_sources.models import ProviderClient, ProviderClientSupport, RpcEndpoint
from source_core.chains import ChainId
from source_core.exceptions import NoSourcesError, UnsupportedChainError
from source_core.requirements import combine_capabilities


logger = logging.getLogger(__name__)


class PrioritizedProviderSourceCombinator(BaseProviderSource):
    """
    Usage:
        combinator = PrioritizedProviderSourceCombinator([alchemy, public_rpc])
        endpoint = combinator.get_provider(chain_id=137)
    """

    def __init__(self, sources: Sequence[BaseProviderSource], name: str = "prioritized-providers") -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def sources(self) -> list[BaseProviderSource]:
        return list(self._sources)

    def supported_clients(self) -> ProviderClientSupport:
        """Union of every source's declared clients, per chain."""
        return combine_capabilities(source.supported_clients() for source in self._sources)

    def get_provider(
        self,
        chain_id: ChainId,
        client: ProviderClient = ProviderClient.HTTP,
    ) -> RpcEndpoint:
        for source in self._sources:
            if source.supports(chain_id, client):
                logger.debug(f"[{self.name}] Using {source.name} for chain {chain_id} ({client.value})")
                return source.get_provider(chain_id, client)

        raise UnsupportedChainError(
            chain_id,
            source_name=self.name,
            supported_chains=self.supported_chains(),
        )
