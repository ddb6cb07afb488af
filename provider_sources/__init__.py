"""
Provider Sources - RPC endpoints per chain with priority fallback.

Usage:
    from provider_sources import PrioritizedProviderSourceCombinator

    providers = PrioritizedProviderSourceCombinator([alchemy, public_rpc])
    endpoint = providers.get_provider(chain_id=1)
"""

from provider_sources.alchemy import AlchemyProviderSource
from provider_sources.base import BaseProviderSource
from provider_sources.combinator import PrioritizedProviderSourceCombinator
from provider_sources.http import (
    HttpProviderSource,
    PublicRpcProviderSource,
    WebSocketProviderSource,
)
from provider_sources.models import ProviderClient, RpcEndpoint
from provider_sources.registry import build_provider_source
from provider_sources.rpc import JsonRpcClient, RpcError


__all__ = [
    "ProviderClient",
    "RpcEndpoint",
    "BaseProviderSource",
    "HttpProviderSource",
    "WebSocketProviderSource",
    "PublicRpcProviderSource",
    "AlchemyProviderSource",
    "PrioritizedProviderSourceCombinator",
    "JsonRpcClient",
    "RpcError",
    "build_provider_source",
]
