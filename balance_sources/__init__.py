"""
Balance Sources - token balances per chain and account.

Usage:
    from balance_sources import BalanceService, CachedBalanceSource, RpcBalanceSource

    source = CachedBalanceSource(RpcBalanceSource(providers, fetch), config)
    service = BalanceService(source, default_timeout="5s")
"""

from balance_sources.base import BaseBalanceSource
from balance_sources.cached import CachedBalanceSource
from balance_sources.models import (
    NATIVE_TOKEN,
    Address,
    BalanceQuery,
    BalancesByChain,
    TokenAddress,
)
from balance_sources.providers.rpc import RpcBalanceSource
from balance_sources.service import BalanceService
from balance_sources.single_chain import SingleChainBaseBalanceSource


__all__ = [
    "NATIVE_TOKEN",
    "Address",
    "TokenAddress",
    "BalanceQuery",
    "BalancesByChain",
    "BaseBalanceSource",
    "SingleChainBaseBalanceSource",
    "CachedBalanceSource",
    "RpcBalanceSource",
    "BalanceService",
]
