"""
Base Metadata Source - Abstract interface for token metadata providers.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from metadata_sources.models import MetadataByChain, MetadataField, TokenAddress
from source_core.chains import ChainId
from source_core.models import FieldsRequirements, SupportRecord
from source_core.timeouts import TimeString


class BaseMetadataSource(ABC):
    """
    Abstract base class for metadata sources.

    Each source must:
    1. Provide a unique name
    2. Implement supported_properties() - chain -> {MetadataField: SupportLevel}
    3. Implement get_metadata()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def supported_properties(self) -> dict[ChainId, SupportRecord]:
        pass

    @abstractmethod
    async def get_metadata(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> MetadataByChain:
        """
        Metadata of tokens.

        Args:
            addresses: Chain id -> token addresses
            requirements: Fields the caller needs
            timeout: Deadline for the whole call

        Returns:
            Chain id -> token -> {MetadataField: value}. Tokens the source
            knows nothing about are omitted.
        """
        pass

    def supported_chains(self) -> list[ChainId]:
        return [int(chain_id) for chain_id in self.supported_properties()]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
