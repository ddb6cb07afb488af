"""
Price Source Registry - default price sources built from settings.
"""

import logging
from typing import Optional

from price_sources.aggregator import AggregatorPriceSource
from price_sources.base import BasePriceSource
from price_sources.cached import CachedPriceSource
from price_sources.providers.defi_llama import DefiLlamaPriceSource
from source_core.config import AggregatorSettings, get_config
from source_core.fetch import FetchService


logger = logging.getLogger(__name__)


def build_price_source(
    fetch_service: FetchService,
    settings: Optional[AggregatorSettings] = None,
    cached: bool = True,
) -> BasePriceSource:
    """
    Set up the default price source.

    Returns an aggregator over the bundled providers using the configured
    method, wrapped in a cache unless ``cached`` is False.
    """
    settings = settings or get_config()
    sources = [DefiLlamaPriceSource(fetch_service)]
    source: BasePriceSource = AggregatorPriceSource(
        sources,
        method=settings.price_aggregation_method,
    )
    if cached:
        source = CachedPriceSource(source, settings.cache.to_cache_config())

    logger.info(
        f"Built price source '{source.name}' over {[s.name for s in sources]} "
        f"(method={settings.price_aggregation_method.value})"
    )
    return source
