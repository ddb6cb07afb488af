"""
Overridable Source List - routes source ids to dedicated lists.

A routing table built at construction maps each overridden source id to the
list that serves it; every other id goes to the default list.
"""

import asyncio
import dataclasses
import logging
from typing import Iterable, Sequence

from quote_sources.base import BaseQuoteSourceList
from quote_sources.models import (
    QuoteRequest,
    QuoteSourceMetadata,
    SourceId,
    SourceListResponse,
)
from source_core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class OverridableSourceList(BaseQuoteSourceList):
    """
    Usage:
        sources = OverridableSourceList(
            default=api_list,
            overrides=[(["0x"], local_list)],
        )
    """

    def __init__(
        self,
        default: BaseQuoteSourceList,
        overrides: Sequence[tuple[Iterable[SourceId], BaseQuoteSourceList]] = (),
    ) -> None:
        self._default = default
        self._overrides: dict[SourceId, BaseQuoteSourceList] = {}
        for source_ids, source_list in overrides:
            for source_id in source_ids:
                if source_id in self._overrides:
                    raise ConfigurationError(
                        f"Source id '{source_id}' is overridden more than once",
                        config_key="overrides",
                    )
                self._overrides[source_id] = source_list

    def supported_sources(self) -> dict[SourceId, QuoteSourceMetadata]:
        sources = self._default.supported_sources()
        for source_id, source_list in self._overrides.items():
            metadata = source_list.supported_sources().get(source_id)
            if metadata is not None:
                sources[source_id] = metadata
            else:
                sources.pop(source_id, None)
        return sources

    def list_for(self, source_id: SourceId) -> BaseQuoteSourceList:
        return self._overrides.get(source_id, self._default)

    async def get_quotes(self, request: QuoteRequest) -> list[SourceListResponse]:
        # Group ids by list, keeping the requested order within each group
        groups: dict[int, tuple[BaseQuoteSourceList, list[SourceId]]] = {}
        for source_id in request.source_ids:
            source_list = self.list_for(source_id)
            groups.setdefault(id(source_list), (source_list, []))[1].append(source_id)

        outcomes = await asyncio.gather(
            *(
                source_list.get_quotes(dataclasses.replace(request, source_ids=tuple(source_ids)))
                for source_list, source_ids in groups.values()
            ),
            return_exceptions=True,
        )

        by_id: dict[SourceId, SourceListResponse] = {}
        for (source_list, source_ids), outcome in zip(groups.values(), outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Source list {source_list!r} failed for {source_ids}: {outcome}")
                for source_id in source_ids:
                    by_id[source_id] = SourceListResponse.failed(source_id, outcome)
                continue
            for response in outcome:
                by_id[response.source_id] = response

        return [
            by_id.get(source_id) or SourceListResponse.failed(source_id, "No response from source list")
            for source_id in request.source_ids
        ]
