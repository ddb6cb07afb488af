"""
Base Gas Price Source - Abstract interface for all gas price providers.

Every source declares, per chain, which speed tiers it can fill in
(supported_speeds) and answers get_gas_price() for one chain at a time.
"""

from abc import ABC, abstractmethod
from typing import Optional

from gas_sources.models import GasPriceResult, SpeedTier
from source_core.chains import ChainId
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import can_support, supported_chains
from source_core.timeouts import TimeString


class BaseGasPriceSource(ABC):
    """
    Abstract base class for gas price sources.

    Each source must:
    1. Provide a unique name
    2. Implement supported_speeds() - static capability map
    3. Implement get_gas_price() - query one chain
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this source."""
        pass

    @abstractmethod
    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        """
        Declared support per chain.

        Returns:
            Chain id -> {SpeedTier: SupportLevel}
        """
        pass

    @abstractmethod
    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        """
        Fetch gas prices for a chain.

        Args:
            chain_id: Chain to query
            requirements: Speed tiers the caller needs
            timeout: Deadline for the whole call

        Returns:
            Speed tier -> gas price

        Raises:
            SourceAggregationError subclasses on failure
        """
        pass

    def supported_chains(self) -> list[ChainId]:
        return supported_chains(self.supported_speeds())

    def can_support(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
    ) -> bool:
        """True if the chain is declared and no required tier is ABSENT."""
        record = self.supported_speeds().get(chain_id)
        return record is not None and can_support(record, requirements)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
