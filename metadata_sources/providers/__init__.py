"""
Providers package - Metadata source implementations.
"""

from metadata_sources.providers.defi_llama import DefiLlamaMetadataSource
from metadata_sources.providers.rpc import RpcMetadataSource


__all__ = [
    "DefiLlamaMetadataSource",
    "RpcMetadataSource",
]
