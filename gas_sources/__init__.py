"""
Gas Sources - gas prices from many providers, merged into one answer.

Features:
- Legacy and EIP-1559 prices as tagged variants
- Aggregator (min / max / median per tier and sub-field)
- Prioritized and fastest-wins combinators
- Per-chain caching
- Gas cost calculation

Usage:
    from gas_sources import AggregatorGasPriceSource, GasService

    source = AggregatorGasPriceSource([etherscan, gas_station], "median")
    service = GasService(source, default_timeout="10s")
    prices = await service.get_gas_price(chain_id=1)
"""

from gas_sources.aggregator import AggregatorGasPriceSource
from gas_sources.base import BaseGasPriceSource
from gas_sources.cached import CachedGasPriceSource
from gas_sources.fastest import FastestGasPriceSource
from gas_sources.models import (
    Eip1559GasPrice,
    GasCost,
    GasPrice,
    GasPriceKind,
    GasPriceResult,
    LegacyGasPrice,
    SpeedTier,
)
from gas_sources.prioritized import PrioritizedGasPriceSource
from gas_sources.registry import build_gas_price_source, build_gas_service
from gas_sources.service import GasService


__all__ = [
    # Models
    "SpeedTier",
    "GasPriceKind",
    "LegacyGasPrice",
    "Eip1559GasPrice",
    "GasPrice",
    "GasPriceResult",
    "GasCost",

    # Sources
    "BaseGasPriceSource",
    "AggregatorGasPriceSource",
    "PrioritizedGasPriceSource",
    "FastestGasPriceSource",
    "CachedGasPriceSource",

    # Service
    "GasService",
    "build_gas_price_source",
    "build_gas_service",
]
