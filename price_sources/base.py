"""
Base Price Source - Abstract interface for token price providers.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from price_sources.models import (
    PriceQuery,
    PriceQuerySupport,
    PricesByChain,
    TokenAddress,
)
from source_core.chains import ChainId
from source_core.exceptions import OperationNotSupportedError, UnsupportedChainError
from source_core.timeouts import TimeString


class BasePriceSource(ABC):
    """
    Abstract base class for price sources.

    Each source must:
    1. Provide a unique name
    2. Implement supported_queries()
    3. Implement get_current_prices()

    Historical prices are optional; sources answering them declare
    HISTORICAL_PRICES and override get_historical_prices().
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this source."""
        pass

    @abstractmethod
    def supported_queries(self) -> PriceQuerySupport:
        """Chain id -> frozenset of PriceQuery."""
        pass

    @abstractmethod
    async def get_current_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        """
        Current prices of tokens.

        Args:
            addresses: Chain id -> token addresses
            timeout: Deadline for the whole call

        Returns:
            Chain id -> token -> PriceResult. Tokens without a price are omitted.
        """
        pass

    async def get_historical_prices(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        timestamp: int,
        search_width: Optional[TimeString] = None,
        timeout: Optional[TimeString] = None,
    ) -> PricesByChain:
        """Prices closest to a unix timestamp (seconds)."""
        raise OperationNotSupportedError(
            "Historical prices are not supported",
            source_name=self.name,
        )

    def supported_chains(self) -> list[ChainId]:
        return [int(chain_id) for chain_id in self.supported_queries()]

    def supports(self, chain_id: ChainId, query: PriceQuery) -> bool:
        return query in self.supported_queries().get(chain_id, frozenset())

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


def validate_query(
    support: PriceQuerySupport,
    chains: Sequence[ChainId],
    query: PriceQuery,
) -> None:
    """
    Raises:
        UnsupportedChainError: If a chain does not answer the query
    """
    for chain_id in chains:
        if query not in support.get(chain_id, frozenset()):
            raise UnsupportedChainError(
                chain_id,
                message=f"Chain with id {chain_id} does not support {query.value}",
                supported_chains=[
                    int(chain) for chain, queries in support.items() if query in queries
                ],
            )


def filter_addresses(
    source: BasePriceSource,
    addresses: Mapping[ChainId, Sequence[TokenAddress]],
    query: PriceQuery,
) -> dict[ChainId, list[TokenAddress]]:
    """Part of a request a source can answer."""
    return {
        chain_id: list(tokens)
        for chain_id, tokens in addresses.items()
        if tokens and source.supports(chain_id, query)
    }
