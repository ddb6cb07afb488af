"""
Gas Source Registry - default gas price sources built from settings.
"""

import logging
from typing import Optional

from gas_sources.aggregator import AggregatorGasPriceSource
from gas_sources.base import BaseGasPriceSource
from gas_sources.cached import CachedGasPriceSource
from gas_sources.providers.etherscan import EtherscanGasPriceSource
from gas_sources.providers.polygon_gas_station import PolygonGasStationSource
from gas_sources.service import GasService
from source_core.chains import Chain
from source_core.config import AggregatorSettings, get_config
from source_core.fetch import FetchService


logger = logging.getLogger(__name__)


def build_default_gas_sources(
    fetch_service: FetchService,
    settings: AggregatorSettings,
) -> list[BaseGasPriceSource]:
    """Remote gas price sources, in priority order."""
    api_keys = dict(settings.explorer_api_keys)
    if settings.etherscan_api_key:
        api_keys[int(Chain.ETHEREUM)] = settings.etherscan_api_key
    logger.debug(f"[etherscan] API keys configured for chains {sorted(api_keys)}")
    return [
        EtherscanGasPriceSource(fetch_service, api_keys=api_keys),
        PolygonGasStationSource(fetch_service),
    ]


def build_gas_price_source(
    fetch_service: FetchService,
    settings: Optional[AggregatorSettings] = None,
    cached: bool = True,
) -> BaseGasPriceSource:
    """
    Set up the default gas price source.

    Returns an aggregator over the default sources using the configured
    method, wrapped in a cache unless ``cached`` is False.
    """
    settings = settings or get_config()
    sources = build_default_gas_sources(fetch_service, settings)
    source: BaseGasPriceSource = AggregatorGasPriceSource(
        sources,
        method=settings.gas_aggregation_method,
    )
    if cached:
        source = CachedGasPriceSource(source, settings.cache.to_cache_config())

    logger.info(
        f"Built gas price source '{source.name}' over {[s.name for s in sources]} "
        f"(method={settings.gas_aggregation_method.value})"
    )
    return source


def build_gas_service(
    fetch_service: FetchService,
    settings: Optional[AggregatorSettings] = None,
) -> GasService:
    settings = settings or get_config()
    return GasService(
        build_gas_price_source(fetch_service, settings),
        default_timeout=settings.default_timeout,
    )
