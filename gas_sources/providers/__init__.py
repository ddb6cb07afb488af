"""
Providers package - Gas price source implementations.
"""

from gas_sources.providers.etherscan import EtherscanGasPriceSource
from gas_sources.providers.polygon_gas_station import PolygonGasStationSource


__all__ = [
    "EtherscanGasPriceSource",
    "PolygonGasStationSource",
]
