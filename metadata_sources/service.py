"""
Metadata Service - validated token metadata lookups.

Requests are checked against the source's declared support before any call
is made, and the response is checked against the requirements afterwards.
"""

import logging
from typing import Mapping, Optional, Sequence

from metadata_sources.base import BaseMetadataSource
from metadata_sources.models import (
    MetadataByChain,
    MetadataField,
    TokenAddress,
    TokenMetadata,
)
from source_core.chains import ChainId
from source_core.exceptions import UnmetRequirementsError
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import (
    nested_responses_meet_requirements,
    validate_requirements,
)
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class MetadataService:

    def __init__(
        self,
        source: BaseMetadataSource,
        default_timeout: Optional[TimeString] = None,
    ) -> None:
        self._source = source
        self._default_timeout = default_timeout

    def supported_chains(self) -> list[ChainId]:
        return [int(chain_id) for chain_id in self.supported_properties()]

    def supported_properties(self) -> dict[ChainId, SupportRecord]:
        return self._source.supported_properties()

    async def get_metadata(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> MetadataByChain:
        """
        Metadata of tokens on several chains.

        Raises:
            UnsupportedChainError: Before any call, if a chain is unknown
            UnmetRequirementsError: Before any call if the requirements cannot
                be met, or after it if the response does not meet them
            OperationTimeoutError: If the deadline passes
        """
        validate_requirements(self.supported_properties(), list(addresses), requirements)
        timeout = timeout or self._default_timeout
        response = await with_timeout(
            self._source.get_metadata(addresses, requirements, timeout),
            timeout,
            description="Token metadata",
        )
        if not nested_responses_meet_requirements(response, requirements):
            logger.warning(f"[{self._source.name}] Metadata response did not meet the requirements")
            raise UnmetRequirementsError(
                "Failed to fetch metadata that meets the given requirements",
                source_name=self._source.name,
            )
        return response

    async def get_metadata_for_chain(
        self,
        chain_id: ChainId,
        addresses: Sequence[TokenAddress],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> dict[TokenAddress, TokenMetadata]:
        result = await self.get_metadata({chain_id: list(addresses)}, requirements, timeout)
        return result.get(chain_id, {})
