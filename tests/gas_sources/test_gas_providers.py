"""
Tests for the bundled gas price providers and the registry.

============================================================
PURPOSE
============================================================
Verify that provider responses normalize to wei and that the
registry wires the default stack together.

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gas_sources.aggregator import AggregatorGasPriceSource
from gas_sources.cached import CachedGasPriceSource
from gas_sources.models import Eip1559GasPrice, LegacyGasPrice, SpeedTier, result_to_dict
from gas_sources.providers.etherscan import EtherscanGasPriceSource, calculate_gas, gwei_to_wei
from gas_sources.providers.polygon_gas_station import PolygonGasStationSource
from gas_sources.registry import build_gas_price_source, build_gas_service
from source_core.aggregation import AggregationMethod
from source_core.config import AggregatorSettings
from source_core.exceptions import SourceError, UnsupportedChainError


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fetch_service():
    """Provide a mock fetch service."""
    service = MagicMock()
    service.fetch_json = AsyncMock()
    return service


# ============================================================
# ETHERSCAN
# ============================================================

class TestEtherscan:
    """Tests for EtherscanGasPriceSource."""

    def test_gwei_conversion(self):
        assert gwei_to_wei("12.5") == 12_500_000_000
        assert gwei_to_wei(1) == 1_000_000_000
        with pytest.raises(ValueError):
            gwei_to_wei("lots")

    def test_calculate_gas(self):
        assert calculate_gas("20") == LegacyGasPrice(20_000_000_000)
        assert calculate_gas("20", "15") == Eip1559GasPrice(20_000_000_000, 5_000_000_000)

    @pytest.mark.asyncio
    async def test_eip1559_oracle(self, fetch_service):
        fetch_service.fetch_json.return_value = {
            "status": "1",
            "result": {
                "SafeGasPrice": "20",
                "ProposeGasPrice": "21",
                "FastGasPrice": "22",
                "suggestBaseFee": "19.5",
            },
        }
        source = EtherscanGasPriceSource(fetch_service, api_keys={1: "key"})

        result = await source.get_gas_price(1, timeout="5s")

        assert result_to_dict(result) == {
            "standard": {"maxFeePerGas": "20000000000", "maxPriorityFeePerGas": "500000000"},
            "fast": {"maxFeePerGas": "21000000000", "maxPriorityFeePerGas": "1500000000"},
            "instant": {"maxFeePerGas": "22000000000", "maxPriorityFeePerGas": "2500000000"},
        }
        args, kwargs = fetch_service.fetch_json.call_args
        assert args[0] == "https://api.etherscan.io/api"
        assert kwargs["params"] == {"module": "gastracker", "action": "gasoracle", "apikey": "key"}
        assert kwargs["timeout"] == "5s"

    @pytest.mark.asyncio
    async def test_legacy_oracle(self, fetch_service):
        fetch_service.fetch_json.return_value = {"result": {"SafeGasPrice": "5", "ProposeGasPrice": "6"}}
        source = EtherscanGasPriceSource(fetch_service)

        result = await source.get_gas_price(137)

        assert result == {
            SpeedTier.STANDARD: LegacyGasPrice(5_000_000_000),
            SpeedTier.FAST: LegacyGasPrice(6_000_000_000),
        }
        assert fetch_service.fetch_json.call_args.args[0] == "https://api.polygonscan.com/api"

    @pytest.mark.asyncio
    async def test_bad_response(self, fetch_service):
        fetch_service.fetch_json.return_value = {"status": "0", "result": "Max rate limit reached"}

        with pytest.raises(SourceError):
            await EtherscanGasPriceSource(fetch_service).get_gas_price(1)

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, fetch_service):
        with pytest.raises(UnsupportedChainError):
            await EtherscanGasPriceSource(fetch_service).get_gas_price(10)

        fetch_service.fetch_json.assert_not_called()

    def test_supported_chains(self, fetch_service):
        assert sorted(EtherscanGasPriceSource(fetch_service).supported_chains()) == [1, 56, 137, 250]


# ============================================================
# POLYGON GAS STATION
# ============================================================

class TestPolygonGasStation:
    """Tests for PolygonGasStationSource."""

    @pytest.mark.asyncio
    async def test_normalizes_buckets(self, fetch_service):
        fetch_service.fetch_json.return_value = {
            "safeLow": {"maxPriorityFee": 30, "maxFee": 31.5},
            "standard": {"maxPriorityFee": 32, "maxFee": 33},
            "fast": {"maxPriorityFee": 40, "maxFee": 41},
            "estimatedBaseFee": 1.5,
        }

        result = await PolygonGasStationSource(fetch_service).get_gas_price(137)

        assert result[SpeedTier.STANDARD] == Eip1559GasPrice(31_500_000_000, 30_000_000_000)
        assert result[SpeedTier.INSTANT] == Eip1559GasPrice(41_000_000_000, 40_000_000_000)

    @pytest.mark.asyncio
    async def test_malformed_bucket(self, fetch_service):
        fetch_service.fetch_json.return_value = {"safeLow": {"maxFee": 1}}

        with pytest.raises(SourceError):
            await PolygonGasStationSource(fetch_service).get_gas_price(137)

    @pytest.mark.asyncio
    async def test_only_polygon(self, fetch_service):
        with pytest.raises(UnsupportedChainError):
            await PolygonGasStationSource(fetch_service).get_gas_price(1)


# ============================================================
# REGISTRY
# ============================================================

class TestGasRegistry:
    """Tests for the default gas source stack."""

    def test_cached_aggregator(self, fetch_service):
        settings = AggregatorSettings(gas_aggregation_method="max")

        source = build_gas_price_source(fetch_service, settings)

        assert isinstance(source, CachedGasPriceSource)
        assert source.name == "cached-aggregator"
        assert sorted(source.supported_chains()) == [1, 56, 137, 250]

    @pytest.mark.asyncio
    async def test_explorer_keys_per_chain(self, fetch_service):
        fetch_service.fetch_json.return_value = {"result": {"SafeGasPrice": "5", "ProposeGasPrice": "6"}}
        settings = AggregatorSettings(etherscan_api_key="eth-key", explorer_api_keys={137: "polygon-key"})
        etherscan = build_gas_price_source(fetch_service, settings, cached=False).sources[0]

        await etherscan.get_gas_price(1)
        assert fetch_service.fetch_json.call_args.kwargs["params"]["apikey"] == "eth-key"

        await etherscan.get_gas_price(137)
        assert fetch_service.fetch_json.call_args.kwargs["params"]["apikey"] == "polygon-key"

        await etherscan.get_gas_price(56)
        assert "apikey" not in fetch_service.fetch_json.call_args.kwargs["params"]

    def test_uncached_aggregator(self, fetch_service):
        settings = AggregatorSettings(gas_aggregation_method="min")

        source = build_gas_price_source(fetch_service, settings, cached=False)

        assert isinstance(source, AggregatorGasPriceSource)
        assert source.method is AggregationMethod.MIN
        assert [s.name for s in source.sources] == ["etherscan", "polygon_gas_station"]

    @pytest.mark.asyncio
    async def test_service_aggregates_polygon(self, fetch_service):
        async def fetch_json(url, **kwargs):
            if "gasstation" in url:
                return {
                    "safeLow": {"maxPriorityFee": 30, "maxFee": 50},
                    "standard": {"maxPriorityFee": 35, "maxFee": 60},
                    "fast": {"maxPriorityFee": 40, "maxFee": 70},
                }
            return {
                "result": {
                    "SafeGasPrice": "40",
                    "ProposeGasPrice": "45",
                    "FastGasPrice": "50",
                    "suggestBaseFee": "20",
                },
            }

        fetch_service.fetch_json.side_effect = fetch_json
        service = build_gas_service(fetch_service, AggregatorSettings(gas_aggregation_method="max"))

        result = await service.get_gas_price(137)

        assert result[SpeedTier.STANDARD] == Eip1559GasPrice(50_000_000_000, 30_000_000_000)
        assert result[SpeedTier.INSTANT] == Eip1559GasPrice(70_000_000_000, 40_000_000_000)
