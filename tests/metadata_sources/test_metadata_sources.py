"""
Tests for Metadata Sources.

============================================================
PURPOSE
============================================================
Verify the per-field fallback merge, requirement checks in the
service and the two bundled metadata providers.

TEST PRINCIPLES:
- Earlier sources win per field, later ones only fill gaps
- Requirements are checked before and after the call

============================================================
"""

from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from balance_sources.models import NATIVE_TOKEN
from metadata_sources.base import BaseMetadataSource
from metadata_sources.fallback import FallbackMetadataSource
from metadata_sources.models import MetadataField, metadata_to_dict
from metadata_sources.providers.defi_llama import DefiLlamaMetadataSource
from metadata_sources.providers.rpc import RpcMetadataSource, decode_string, decode_uint
from metadata_sources.service import MetadataService
from provider_sources.http import HttpProviderSource
from source_core.exceptions import (
    AllSourcesFailedError,
    NoSourcesError,
    SourceError,
    UnmetRequirementsError,
    UnsupportedChainError,
)
from source_core.models import FieldRequirement, FieldsRequirements, SupportLevel


USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"

DECIMALS = MetadataField.DECIMALS
SYMBOL = MetadataField.SYMBOL
NAME = MetadataField.NAME


def abi_string(text: str) -> str:
    data = text.encode()
    return (
        "0x"
        + (32).to_bytes(32, "big").hex()
        + len(data).to_bytes(32, "big").hex()
        + data.hex().ljust(64, "0")
    )


def word(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


class FakeMetadataSource(BaseMetadataSource):
    """Metadata source answering from a fixed table."""

    def __init__(
        self,
        metadata: dict,
        name: str = "fake",
        support: Optional[dict] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._metadata = metadata
        self._name = name
        self._support = support
        self._error = error
        self.requests: list[dict] = []

    @property
    def name(self) -> str:
        return self._name

    def supported_properties(self):
        if self._support is not None:
            return self._support
        return {
            chain_id: {DECIMALS: SupportLevel.PRESENT, SYMBOL: SupportLevel.PRESENT}
            for chain_id in self._metadata
        }

    async def get_metadata(self, addresses, requirements=None, timeout=None):
        self.requests.append({chain_id: list(tokens) for chain_id, tokens in addresses.items()})
        if self._error is not None:
            raise self._error
        return {
            chain_id: {
                token: dict(self._metadata[chain_id][token])
                for token in tokens
                if token in self._metadata.get(chain_id, {})
            }
            for chain_id, tokens in addresses.items()
        }


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
# FALLBACK
# ============================================================

class TestFallbackMetadataSource:
    """Tests for FallbackMetadataSource."""

    def test_no_sources(self):
        with pytest.raises(NoSourcesError):
            FallbackMetadataSource([])

    def test_support_is_a_union(self):
        rpc = FakeMetadataSource({}, support={1: {DECIMALS: SupportLevel.PRESENT, NAME: SupportLevel.OPTIONAL}})
        api = FakeMetadataSource({}, support={
            1: {NAME: SupportLevel.PRESENT},
            10: {SYMBOL: SupportLevel.OPTIONAL},
        })

        support = FallbackMetadataSource([rpc, api]).supported_properties()

        assert support == {
            1: {DECIMALS: SupportLevel.PRESENT, NAME: SupportLevel.PRESENT},
            10: {SYMBOL: SupportLevel.OPTIONAL},
        }

    @pytest.mark.asyncio
    async def test_first_source_wins_per_field(self):
        first = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}}, name="first")
        second = FakeMetadataSource({1: {USDC: {DECIMALS: 18, SYMBOL: "USDC"}, DAI: {SYMBOL: "DAI"}}}, name="second")

        result = await FallbackMetadataSource([first, second]).get_metadata({1: [USDC, DAI]})

        assert result == {1: {USDC: {DECIMALS: 6, SYMBOL: "USDC"}, DAI: {SYMBOL: "DAI"}}}

    @pytest.mark.asyncio
    async def test_none_values_do_not_shadow_later_sources(self):
        first = FakeMetadataSource({1: {USDC: {SYMBOL: None}}}, name="first")
        second = FakeMetadataSource({1: {USDC: {SYMBOL: "USDC"}}}, name="second")

        result = await FallbackMetadataSource([first, second]).get_metadata({1: [USDC]})

        assert result[1][USDC] == {SYMBOL: "USDC"}

    @pytest.mark.asyncio
    async def test_sources_only_get_supported_chains(self):
        mainnet = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}}, name="mainnet")
        optimism = FakeMetadataSource({10: {USDC: {DECIMALS: 6}}}, name="optimism")

        await FallbackMetadataSource([mainnet, optimism]).get_metadata({1: [USDC], 10: [USDC]})

        assert mainnet.requests == [{1: [USDC]}]
        assert optimism.requests == [{10: [USDC]}]

    @pytest.mark.asyncio
    async def test_partial_failure_is_tolerated(self):
        broken = FakeMetadataSource({1: {}}, name="broken", error=RuntimeError("down"))
        ok = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}}, name="ok")

        result = await FallbackMetadataSource([broken, ok]).get_metadata({1: [USDC]})

        assert result == {1: {USDC: {DECIMALS: 6}}}

    @pytest.mark.asyncio
    async def test_all_fail(self):
        sources = [FakeMetadataSource({1: {}}, name=name, error=RuntimeError("down")) for name in ("a", "b")]

        with pytest.raises(AllSourcesFailedError, match="Failed to fetch metadata on all sources"):
            await FallbackMetadataSource(sources).get_metadata({1: [USDC]})

    @pytest.mark.asyncio
    async def test_empty_request(self):
        source = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}})

        assert await FallbackMetadataSource([source]).get_metadata({1: []}) == {}
        assert source.requests == []

    @pytest.mark.asyncio
    async def test_unsupported_chain(self):
        source = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}})

        with pytest.raises(UnsupportedChainError):
            await FallbackMetadataSource([source]).get_metadata({137: [USDC]})

        assert source.requests == []


# ============================================================
# SERVICE
# ============================================================

class TestMetadataService:
    """Tests for MetadataService."""

    @pytest.mark.asyncio
    async def test_metadata_for_chain(self):
        service = MetadataService(FakeMetadataSource({1: {USDC: {DECIMALS: 6, SYMBOL: "USDC"}}}), default_timeout="5s")

        result = await service.get_metadata_for_chain(1, [USDC])

        assert result == {USDC: {DECIMALS: 6, SYMBOL: "USDC"}}
        assert metadata_to_dict(result[USDC]) == {"decimals": 6, "symbol": "USDC"}
        assert service.supported_chains() == [1]

    @pytest.mark.asyncio
    async def test_requirement_declared_absent_fails_before_call(self):
        source = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}})
        requirements = FieldsRequirements({NAME: FieldRequirement.REQUIRED})

        with pytest.raises(UnmetRequirementsError, match="cannot support the given requirements"):
            await MetadataService(source).get_metadata({1: [USDC]}, requirements)

        assert source.requests == []

    @pytest.mark.asyncio
    async def test_response_missing_required_field(self):
        source = FakeMetadataSource({1: {USDC: {DECIMALS: 6}}})
        requirements = FieldsRequirements({SYMBOL: FieldRequirement.REQUIRED})

        with pytest.raises(UnmetRequirementsError) as exc_info:
            await MetadataService(source).get_metadata({1: [USDC]}, requirements)

        assert exc_info.value.message == "Failed to fetch metadata that meets the given requirements"

    @pytest.mark.asyncio
    async def test_parsed_requirements(self):
        source = FakeMetadataSource({1: {USDC: {DECIMALS: 6, SYMBOL: "USDC"}}})
        requirements = FieldsRequirements.parse(MetadataField, {"decimals": "required", "symbol": "optional"})

        result = await MetadataService(source).get_metadata({1: [USDC]}, requirements)

        assert result[1][USDC][DECIMALS] == 6


# ============================================================
# RPC
# ============================================================

class TestRpcMetadataSource:
    """Tests for RpcMetadataSource."""

    def test_decode_uint(self):
        assert decode_uint(word(18)) == 18

    def test_decode_abi_string(self):
        assert decode_string(abi_string("USD Coin")) == "USD Coin"

    def test_decode_bytes32(self):
        assert decode_string("0x" + b"MKR".hex().ljust(64, "0")) == "MKR"

    @pytest.mark.parametrize("value", ["0x1234", "0x" + "00" * 31 + "20" + "00" * 31 + "ff"])
    def test_decode_invalid_string(self, value):
        with pytest.raises(ValueError):
            decode_string(value)

    @pytest.fixture
    def source(self, fetch_service):
        async def fetch_json(url, method="GET", json=None, **kwargs):
            selector = json["params"][0]["data"]
            if selector == "0x313ce567":
                return {"result": word(6)}
            if selector == "0x95d89b41":
                return {"result": abi_string("USDC")}
            # name() reverts
            return {"error": {"code": 3, "message": "execution reverted"}}

        fetch_service.fetch_json.side_effect = fetch_json
        return RpcMetadataSource(HttpProviderSource("https://node.example.com", chains=[1]), fetch_service)

    def test_name_is_optional(self, source):
        assert source.supported_properties()[1][NAME] is SupportLevel.OPTIONAL

    @pytest.mark.asyncio
    async def test_reads_erc20_metadata(self, source):
        result = await source.get_metadata({1: [USDC]})

        assert result == {1: {USDC: {DECIMALS: 6, SYMBOL: "USDC"}}}

    @pytest.mark.asyncio
    async def test_native_token_makes_no_call(self, source, fetch_service):
        result = await source.get_metadata({1: [NATIVE_TOKEN]})

        assert result == {1: {NATIVE_TOKEN: {DECIMALS: 18, SYMBOL: "ETH", NAME: "Ether"}}}
        fetch_service.fetch_json.assert_not_called()


# ============================================================
# DEFILLAMA
# ============================================================

class TestDefiLlamaMetadata:
    """Tests for DefiLlamaMetadataSource."""

    @pytest.mark.asyncio
    async def test_metadata(self, fetch_service):
        fetch_service.fetch_json.return_value = {
            "coins": {
                f"ethereum:{USDC.lower()}": {"decimals": 6, "symbol": "USDC", "price": 1.0},
                f"ethereum:{DAI.lower()}": {"price": 1.0},
            },
        }

        result = await DefiLlamaMetadataSource(fetch_service).get_metadata({1: [USDC, DAI]})

        assert result == {1: {USDC: {DECIMALS: 6, SYMBOL: "USDC"}}}

    @pytest.mark.asyncio
    async def test_unexpected_response(self, fetch_service):
        fetch_service.fetch_json.return_value = {"error": "nope"}

        with pytest.raises(SourceError):
            await DefiLlamaMetadataSource(fetch_service).get_metadata({1: [USDC]})

    def test_no_name_support(self, fetch_service):
        support = DefiLlamaMetadataSource(fetch_service).supported_properties()

        assert NAME not in support[1]
