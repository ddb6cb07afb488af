"""
Fallback Metadata Source - combines several metadata sources.

All sources supporting a chain are asked concurrently. For every token and
field the value of the first source (in the order given) that reported it
wins, so a lower priority source only fills the gaps of the ones before it.
"""

import asyncio
import logging
from typing import Mapping, Optional, Sequence

from metadata_sources.base import BaseMetadataSource
from metadata_sources.models import (
    MetadataByChain,
    MetadataField,
    TokenAddress,
)
from source_core.chains import ChainId
from source_core.exceptions import AllSourcesFailedError, NoSourcesError
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import combine_support, validate_requirements
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class FallbackMetadataSource(BaseMetadataSource):
    """
    Usage:
        source = FallbackMetadataSource([rpc_metadata, defi_llama_metadata])
        metadata = await source.get_metadata({1: [USDC]}, timeout="5s")
    """

    def __init__(self, sources: Sequence[BaseMetadataSource], name: str = "fallback-metadata") -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def supported_properties(self) -> dict[ChainId, SupportRecord]:
        """Union of every source's support, strongest level per field."""
        return combine_support(source.supported_properties() for source in self._sources)

    async def get_metadata(
        self,
        addresses: Mapping[ChainId, Sequence[TokenAddress]],
        requirements: Optional[FieldsRequirements[MetadataField]] = None,
        timeout: Optional[TimeString] = None,
    ) -> MetadataByChain:
        validate_requirements(self.supported_properties(), list(addresses), requirements)

        requests = []
        for source in self._sources:
            supported = source.supported_properties()
            subset = {
                chain_id: list(tokens)
                for chain_id, tokens in addresses.items()
                if tokens and chain_id in supported
            }
            if subset:
                requests.append((source, subset))
        if not requests:
            return {}

        outcomes = await asyncio.gather(
            *(
                with_timeout(
                    source.get_metadata(subset, None, timeout),
                    timeout,
                    description=f"{source.name} metadata",
                )
                for source, subset in requests
            ),
            return_exceptions=True,
        )

        result: MetadataByChain = {}
        failures: dict[str, Exception] = {}
        # Outcomes are in source order, so setdefault keeps the highest priority value
        for (source, subset), outcome in zip(requests, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{source.name}] Failed to fetch metadata: {outcome}")
                failures[source.name] = outcome
                continue
            for chain_id, tokens in subset.items():
                by_token = (outcome or {}).get(chain_id, {})
                for token in tokens:
                    for field, value in (by_token.get(token) or {}).items():
                        if value is not None:
                            result.setdefault(chain_id, {}).setdefault(token, {}).setdefault(field, value)

        if len(failures) == len(requests):
            logger.error(f"[{self.name}] All sources failed to fetch metadata")
            raise AllSourcesFailedError(
                "Failed to fetch metadata on all sources",
                failures=failures,
            )
        return result
