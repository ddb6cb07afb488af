"""
Base Balance Source - Abstract interface for balance providers.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional, Sequence

from balance_sources.models import (
    Address,
    BalanceQuery,
    BalanceQuerySupport,
    BalancesByChain,
    TokenAddress,
)
from source_core.chains import ChainId
from source_core.exceptions import OperationNotSupportedError
from source_core.timeouts import TimeString


class BaseBalanceSource(ABC):
    """
    Abstract base class for balance sources.

    Each source must:
    1. Provide a unique name
    2. Implement supported_queries() - chain -> frozenset of BalanceQuery
    3. Implement both query methods (raising OperationNotSupportedError for
       queries it does not declare)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def supported_queries(self) -> BalanceQuerySupport:
        pass

    @abstractmethod
    async def get_balances_for_tokens(
        self,
        tokens: Mapping[ChainId, Mapping[Address, Sequence[TokenAddress]]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        """
        Balances of the given tokens for the given accounts.

        Args:
            tokens: Chain id -> account -> token addresses
            timeout: Deadline for the whole call

        Returns:
            Chain id -> account -> token -> balance. Chains that failed and
            balances that could not be read are omitted.
        """
        pass

    @abstractmethod
    async def get_tokens_held_by_accounts(
        self,
        accounts: Mapping[ChainId, Sequence[Address]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        """Every token with a non-zero balance, per account."""
        pass

    def supported_chains(self) -> list[ChainId]:
        return [int(chain_id) for chain_id in self.supported_queries()]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


def check_query_support(
    support: BalanceQuerySupport,
    chains: Iterable[ChainId],
    query: BalanceQuery,
    source_name: Optional[str] = None,
) -> None:
    """
    Raises:
        OperationNotSupportedError: If any chain does not answer the query
    """
    for chain_id in chains:
        if query not in support.get(chain_id, frozenset()):
            raise OperationNotSupportedError(
                f"Operation not supported: {query.value} on chain {chain_id}",
                source_name=source_name,
                chain_id=chain_id,
            )
