"""
Providers package - Price source implementations.
"""

from price_sources.providers.defi_llama import DefiLlamaPriceSource


__all__ = [
    "DefiLlamaPriceSource",
]
