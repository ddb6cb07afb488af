"""
Providers package - Balance source implementations.
"""

from balance_sources.providers.rpc import RpcBalanceSource


__all__ = [
    "RpcBalanceSource",
]
