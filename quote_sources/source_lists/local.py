"""
Local Source List - runs quote sources in this process.
"""

import asyncio
import logging
from typing import Mapping

from quote_sources.base import BaseQuoteSource, BaseQuoteSourceList
from quote_sources.models import (
    QuoteRequest,
    QuoteSourceMetadata,
    SourceId,
    SourceListResponse,
)
from source_core.timeouts import with_timeout


logger = logging.getLogger(__name__)


class LocalSourceList(BaseQuoteSourceList):
    """
    Usage:
        sources = LocalSourceList({"0x": ZeroExQuoteSource(fetch, api_key)})
        responses = await sources.get_quotes(request)
    """

    def __init__(self, sources: Mapping[SourceId, BaseQuoteSource]) -> None:
        self._sources = dict(sources)

    def supported_sources(self) -> dict[SourceId, QuoteSourceMetadata]:
        return {source_id: source.metadata() for source_id, source in self._sources.items()}

    async def get_quotes(self, request: QuoteRequest) -> list[SourceListResponse]:
        return list(await asyncio.gather(*(self._quote(source_id, request) for source_id in request.source_ids)))

    async def _quote(self, source_id: SourceId, request: QuoteRequest) -> SourceListResponse:
        source = self._sources.get(source_id)
        if source is None:
            return SourceListResponse.failed(source_id, f"Unknown source '{source_id}'")

        reason = source.unsupported_reason(request)
        if reason is not None:
            return SourceListResponse.failed(source_id, reason)

        try:
            quote = await with_timeout(
                source.quote(request, request.quote_timeout),
                request.quote_timeout,
                description=f"{source_id} quote",
            )
        except Exception as e:
            logger.warning(f"[{source_id}] Failed to quote on chain {request.chain_id}: {e}")
            return SourceListResponse.failed(source_id, e)
        return SourceListResponse(source_id=source_id, quote=quote)
