"""
Quote Sources - swap quotes from local sources or a remote quote service.

Usage:
    from quote_sources import APISourceList, LocalSourceList, OverridableSourceList

    sources = OverridableSourceList(default=api_list, overrides=[(["0x"], local_list)])
    responses = await sources.get_quotes(request)
"""

from quote_sources.base import BaseQuoteSource, BaseQuoteSourceList
from quote_sources.models import (
    BuyOrder,
    QuoteRequest,
    QuoteSourceMetadata,
    QuoteTx,
    SellOrder,
    SourceId,
    SourceListResponse,
    SourceQuoteResponse,
)
from quote_sources.providers.zero_x import ZeroExQuoteSource
from quote_sources.source_lists import (
    APISourceList,
    LocalSourceList,
    OverridableSourceList,
)


__all__ = [
    # Models
    "SourceId",
    "SellOrder",
    "BuyOrder",
    "QuoteRequest",
    "QuoteSourceMetadata",
    "QuoteTx",
    "SourceQuoteResponse",
    "SourceListResponse",

    # Sources
    "BaseQuoteSource",
    "ZeroExQuoteSource",

    # Source lists
    "BaseQuoteSourceList",
    "LocalSourceList",
    "APISourceList",
    "OverridableSourceList",
]
