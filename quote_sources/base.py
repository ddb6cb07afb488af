"""
Base Quote Source and Source List - Abstract interfaces for quoting.

A quote source talks to one aggregator or DEX. A source list answers a
request for several source ids at once, one SourceListResponse per id.
"""

from abc import ABC, abstractmethod
from typing import Optional

from quote_sources.models import (
    QuoteRequest,
    QuoteSourceMetadata,
    SourceId,
    SourceListResponse,
    SourceQuoteResponse,
)
from source_core.timeouts import TimeString


class BaseQuoteSource(ABC):
    """
    Abstract base class for quote sources.

    Each source must:
    1. Describe itself (metadata)
    2. Implement quote()
    """

    @abstractmethod
    def metadata(self) -> QuoteSourceMetadata:
        pass

    @abstractmethod
    async def quote(
        self,
        request: QuoteRequest,
        timeout: Optional[TimeString] = None,
    ) -> SourceQuoteResponse:
        """
        Raises:
            SourceAggregationError subclasses on failure
        """
        pass

    def unsupported_reason(self, request: QuoteRequest) -> Optional[str]:
        """Why this source cannot quote the request, None if it can."""
        metadata = self.metadata()
        if not metadata.supports_chain(request.chain_id):
            return f"Chain with id {request.chain_id} not supported"
        if request.order.type == "buy" and not metadata.buy_orders:
            return "Buy orders are not supported"
        if request.recipient and request.recipient.lower() != request.taker_address.lower() \
                and not metadata.swap_and_transfer:
            return "Swap and transfer is not supported"
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.metadata().name})>"


class BaseQuoteSourceList(ABC):
    """Answers quote requests for many source ids."""

    @abstractmethod
    def supported_sources(self) -> dict[SourceId, QuoteSourceMetadata]:
        pass

    @abstractmethod
    async def get_quotes(self, request: QuoteRequest) -> list[SourceListResponse]:
        """
        One response per id in ``request.source_ids``, in the same order.

        Failures of individual sources are captured in their response rather
        than raised.
        """
        pass
