"""
Providers package - Quote source implementations.
"""

from quote_sources.providers.zero_x import ZeroExQuoteSource


__all__ = [
    "ZeroExQuoteSource",
]
