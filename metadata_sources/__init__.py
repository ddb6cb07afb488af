"""
Metadata Sources - token decimals, symbols and names.

Usage:
    from metadata_sources import FallbackMetadataSource, MetadataService

    service = MetadataService(FallbackMetadataSource([rpc, defi_llama]))
    metadata = await service.get_metadata_for_chain(1, [USDC], timeout="5s")
"""

from metadata_sources.base import BaseMetadataSource
from metadata_sources.fallback import FallbackMetadataSource
from metadata_sources.models import (
    MetadataByChain,
    MetadataField,
    TokenMetadata,
    metadata_to_dict,
)
from metadata_sources.providers.defi_llama import DefiLlamaMetadataSource
from metadata_sources.providers.rpc import RpcMetadataSource
from metadata_sources.service import MetadataService


__all__ = [
    "MetadataField",
    "TokenMetadata",
    "MetadataByChain",
    "metadata_to_dict",
    "BaseMetadataSource",
    "FallbackMetadataSource",
    "DefiLlamaMetadataSource",
    "RpcMetadataSource",
    "MetadataService",
]
