"""
API Source List - delegates quoting to a remote quote service.

One GET per source id. The request is flattened into sorted query
parameters; the quote timeout forwarded to the server is shortened by a
margin so the server gives up before our own deadline passes.
"""

import asyncio
import logging
from typing import Any, Callable, Mapping, Union
from urllib.parse import urlencode

from quote_sources.base import BaseQuoteSourceList
from quote_sources.models import (
    QuoteRequest,
    QuoteSourceMetadata,
    SourceId,
    SourceListResponse,
    SourceQuoteResponse,
)
from source_core.fetch import FetchService
from source_core.timeouts import reduce_timeout


logger = logging.getLogger(__name__)

FORWARDED_TIMEOUT_MARGIN = "750"

URIGenerator = Callable[[QuoteRequest], str]


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class APISourceList(BaseQuoteSourceList):
    """
    Usage:
        sources = APISourceList(fetch, "https://quotes.example.com/v1/quote", metadata_by_id)
        responses = await sources.get_quotes(request)
    """

    def __init__(
        self,
        fetch_service: FetchService,
        base_uri: Union[str, URIGenerator],
        sources: Mapping[SourceId, QuoteSourceMetadata],
    ) -> None:
        self._fetch = fetch_service
        self._base_uri = base_uri if callable(base_uri) else (lambda _request: base_uri)
        self._sources = dict(sources)

    def supported_sources(self) -> dict[SourceId, QuoteSourceMetadata]:
        return dict(self._sources)

    def build_url(self, request: QuoteRequest, source_id: SourceId) -> str:
        params = request.to_params()
        if request.quote_timeout:
            params["quoteTimeout"] = reduce_timeout(request.quote_timeout, FORWARDED_TIMEOUT_MARGIN)
        params["sourceIds"] = source_id
        query = urlencode([(key, _format_param(params[key])) for key in sorted(params)])
        return f"{self._base_uri(request)}?{query}"

    async def get_quotes(self, request: QuoteRequest) -> list[SourceListResponse]:
        return list(await asyncio.gather(*(self._quote(source_id, request) for source_id in request.source_ids)))

    async def _quote(self, source_id: SourceId, request: QuoteRequest) -> SourceListResponse:
        url = self.build_url(request, source_id)
        try:
            data = await self._fetch.fetch_json(url, timeout=request.quote_timeout, source_name=source_id)
            return self.parse_response(source_id, data)
        except Exception as e:
            logger.warning(f"[{source_id}] Remote quote failed: {e}")
            return SourceListResponse.failed(source_id, e)

    def parse_response(self, source_id: SourceId, data: Any) -> SourceListResponse:
        """
        Accepts {"quote": {...}} or {"failed": true, "error": "..."}.

        Raises:
            ValueError / KeyError: On anything else
        """
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected quote response: {data!r}"[:300])
        if data.get("failed") or "error" in data:
            return SourceListResponse.failed(source_id, data.get("error") or "Unknown error")
        return SourceListResponse(source_id=source_id, quote=SourceQuoteResponse.from_dict(data["quote"]))
