"""
Provider Source Registry - default provider source built from settings.
"""

import logging
from typing import Optional

from provider_sources.alchemy import AlchemyProviderSource
from provider_sources.base import BaseProviderSource
from provider_sources.combinator import PrioritizedProviderSourceCombinator
from provider_sources.http import PublicRpcProviderSource
from source_core.config import AggregatorSettings, get_config


logger = logging.getLogger(__name__)


def build_provider_source(settings: Optional[AggregatorSettings] = None) -> PrioritizedProviderSourceCombinator:
    """Alchemy first when a key is configured, public endpoints as fallback."""
    settings = settings or get_config()
    sources: list[BaseProviderSource] = []
    if settings.alchemy_api_key:
        sources.append(AlchemyProviderSource(settings.alchemy_api_key, protocol="https"))
    sources.append(PublicRpcProviderSource())

    logger.info(f"Built provider source over {[source.name for source in sources]}")
    return PrioritizedProviderSourceCombinator(sources)
