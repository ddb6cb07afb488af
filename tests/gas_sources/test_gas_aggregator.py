"""
Tests for the Gas Price Aggregator.

============================================================
PURPOSE
============================================================
Verify pre-flight validation, failure collection, kind
normalization and per-tier aggregation.

TEST PRINCIPLES:
- Unsupported requests never reach a source
- One surviving source is enough
- Legacy and EIP-1559 prices are never mixed

============================================================
"""

import asyncio
from typing import Optional

import pytest

from gas_sources.aggregator import AggregatorGasPriceSource, choose_kind, normalize_result
from gas_sources.base import BaseGasPriceSource
from gas_sources.models import (
    Eip1559GasPrice,
    GasPriceKind,
    LegacyGasPrice,
    SpeedTier,
)
from source_core.exceptions import (
    AllSourcesFailedError,
    NoSourcesError,
    OperationTimeoutError,
    UnmetRequirementsError,
    UnsupportedChainError,
)
from source_core.models import FieldsRequirements, SupportLevel


CHAIN_ID = 1
STANDARD = SpeedTier.STANDARD
FAST = SpeedTier.FAST
INSTANT = SpeedTier.INSTANT


def LEGACY(amount: int) -> LegacyGasPrice:
    return LegacyGasPrice(gas_price=amount)


def EIP(fee: int, priority_fee: int) -> Eip1559GasPrice:
    return Eip1559GasPrice(max_fee_per_gas=fee, max_priority_fee_per_gas=priority_fee)


class FakeGasSource(BaseGasPriceSource):
    """Gas source with a fixed answer and a call counter."""

    def __init__(
        self,
        price=None,
        chain_id: int = CHAIN_ID,
        support: Optional[dict] = None,
        error: Optional[Exception] = None,
        name: str = "fake",
    ) -> None:
        self._price = price or {}
        self._error = error
        self._name = name
        if support is None:
            support = {tier: SupportLevel.PRESENT for tier in (self._price or {STANDARD: None})}
        self._support = {chain_id: support}
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def supported_speeds(self):
        return self._support

    async def get_gas_price(self, chain_id, requirements=None, timeout=None):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return dict(self._price)


def failing_source(name: str = "failing") -> FakeGasSource:
    return FakeGasSource(error=RuntimeError("Something failed"), name=name)


class SlowGasSource(FakeGasSource):
    """Gas source that answers after a delay."""

    def __init__(self, price, delay: float, name: str = "slow") -> None:
        super().__init__(price, name=name)
        self.delay = delay

    async def get_gas_price(self, chain_id, requirements=None, timeout=None):
        await asyncio.sleep(self.delay)
        return await super().get_gas_price(chain_id, requirements, timeout)


def require(*tiers: SpeedTier) -> FieldsRequirements:
    return FieldsRequirements.parse(SpeedTier, {tier.value: "required" for tier in tiers})


# ============================================================
# CONSTRUCTION AND PRE-FLIGHT
# ============================================================

class TestAggregatorValidation:
    """Tests for construction and pre-flight checks."""

    def test_no_sources(self):
        with pytest.raises(NoSourcesError, match="No sources were specified"):
            AggregatorGasPriceSource([], "median")

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            AggregatorGasPriceSource([FakeGasSource({STANDARD: LEGACY(1)})], "average")

    @pytest.mark.asyncio
    async def test_unsupported_chain_never_calls_sources(self):
        sources = [FakeGasSource({STANDARD: LEGACY(100)}), FakeGasSource({STANDARD: LEGACY(200)})]
        aggregator = AggregatorGasPriceSource(sources, "median")

        with pytest.raises(UnsupportedChainError, match="Chain with id 2 not supported"):
            await aggregator.get_gas_price(2)

        assert [source.calls for source in sources] == [0, 0]

    @pytest.mark.asyncio
    async def test_requirements_no_source_declares(self):
        source = FakeGasSource({STANDARD: LEGACY(100)})
        aggregator = AggregatorGasPriceSource([source], "median")

        with pytest.raises(UnmetRequirementsError):
            await aggregator.get_gas_price(CHAIN_ID, require(FAST))

        assert source.calls == 0

    def test_supported_speeds_is_union(self):
        aggregator = AggregatorGasPriceSource([
            FakeGasSource({STANDARD: LEGACY(1)}),
            FakeGasSource({FAST: LEGACY(1)}, support={FAST: SupportLevel.OPTIONAL}),
        ])

        assert aggregator.supported_speeds() == {
            CHAIN_ID: {STANDARD: SupportLevel.PRESENT, FAST: SupportLevel.OPTIONAL},
        }
        assert aggregator.supported_chains() == [CHAIN_ID]


# ============================================================
# FAILURE COLLECTION
# ============================================================

class TestAggregatorFailures:
    """Tests for sources that fail or return unusable data."""

    @pytest.mark.asyncio
    async def test_all_sources_fail(self):
        aggregator = AggregatorGasPriceSource([failing_source("a"), failing_source("b")], "median")

        with pytest.raises(AllSourcesFailedError, match="Failed to calculate gas on all sources") as exc_info:
            await aggregator.get_gas_price(CHAIN_ID)

        assert set(exc_info.value.failures) == {"a", "b"}
        assert all(str(error) == "Something failed" for error in exc_info.value.failures.values())

    @pytest.mark.asyncio
    async def test_duplicate_names_keep_every_failure(self):
        aggregator = AggregatorGasPriceSource([failing_source(), failing_source()], "median")

        with pytest.raises(AllSourcesFailedError) as exc_info:
            await aggregator.get_gas_price(CHAIN_ID)

        assert set(exc_info.value.failures) == {"failing", "failing#2"}

    @pytest.mark.asyncio
    async def test_slow_source_is_dropped_on_timeout(self):
        aggregator = AggregatorGasPriceSource([
            SlowGasSource({STANDARD: LEGACY(500)}, delay=1.0),
            FakeGasSource({STANDARD: LEGACY(100)}, name="fast"),
        ], "max")

        result = await aggregator.get_gas_price(CHAIN_ID, timeout="100ms")

        assert result == {STANDARD: LEGACY(100)}

    @pytest.mark.asyncio
    async def test_every_source_times_out(self):
        aggregator = AggregatorGasPriceSource([
            SlowGasSource({STANDARD: LEGACY(100)}, delay=1.0, name="a"),
            SlowGasSource({STANDARD: LEGACY(200)}, delay=1.0, name="b"),
        ], "median")

        with pytest.raises(AllSourcesFailedError) as exc_info:
            await aggregator.get_gas_price(CHAIN_ID, timeout="50ms")

        assert set(exc_info.value.failures) == {"a", "b"}
        assert all(isinstance(error, OperationTimeoutError) for error in exc_info.value.failures.values())

    @pytest.mark.asyncio
    async def test_response_not_meeting_requirements(self):
        source = FakeGasSource(
            {STANDARD: LEGACY(100)},
            support={STANDARD: SupportLevel.PRESENT, FAST: SupportLevel.OPTIONAL},
        )
        aggregator = AggregatorGasPriceSource([source], "median")

        with pytest.raises(
            AllSourcesFailedError,
            match="Could not fetch gas prices that met the given requirements",
        ):
            await aggregator.get_gas_price(CHAIN_ID, require(FAST))

    @pytest.mark.asyncio
    async def test_one_working_source_is_enough(self):
        price = {STANDARD: LEGACY(100)}
        aggregator = AggregatorGasPriceSource([FakeGasSource(price), failing_source()], "median")

        assert await aggregator.get_gas_price(CHAIN_ID) == price

    @pytest.mark.asyncio
    async def test_invalid_tiers_are_dropped(self):
        aggregator = AggregatorGasPriceSource([
            FakeGasSource({STANDARD: LEGACY(100), FAST: LEGACY(-1), INSTANT: LEGACY(0)}),
        ])

        assert await aggregator.get_gas_price(CHAIN_ID) == {STANDARD: LEGACY(100)}

    @pytest.mark.asyncio
    async def test_zero_price_never_wins_min(self):
        aggregator = AggregatorGasPriceSource([
            FakeGasSource({STANDARD: LEGACY(0)}, name="zero"),
            FakeGasSource({STANDARD: LEGACY(100)}, name="priced"),
        ], "min")

        assert await aggregator.get_gas_price(CHAIN_ID) == {STANDARD: LEGACY(100)}

    @pytest.mark.asyncio
    async def test_zero_max_fee_is_invalid_but_zero_tip_is_not(self):
        aggregator = AggregatorGasPriceSource([
            FakeGasSource({STANDARD: EIP(0, 0)}, name="zero-fee"),
            FakeGasSource({STANDARD: EIP(30, 0)}, name="zero-tip"),
        ], "min")

        assert await aggregator.get_gas_price(CHAIN_ID) == {STANDARD: EIP(30, 0)}


# ============================================================
# NORMALIZATION
# ============================================================

class TestNormalization:
    """Tests for choosing between legacy and EIP-1559 prices."""

    @pytest.mark.asyncio
    async def test_eip1559_wins_a_tie(self):
        eip1559_price = {STANDARD: EIP(10, 20)}
        aggregator = AggregatorGasPriceSource([
            FakeGasSource({STANDARD: LEGACY(100)}),
            FakeGasSource(eip1559_price),
        ])

        assert await aggregator.get_gas_price(CHAIN_ID) == eip1559_price

    @pytest.mark.asyncio
    async def test_legacy_wins_with_more_speeds(self):
        legacy_price = {STANDARD: LEGACY(100), FAST: LEGACY(200)}
        aggregator = AggregatorGasPriceSource([
            FakeGasSource(legacy_price),
            FakeGasSource({STANDARD: EIP(10, 20)}),
        ])

        assert await aggregator.get_gas_price(CHAIN_ID) == legacy_price

    def test_choose_kind_single_kind(self):
        assert choose_kind([{STANDARD: LEGACY(1)}], []) is GasPriceKind.LEGACY
        assert choose_kind([], [{STANDARD: EIP(1, 1)}]) is GasPriceKind.EIP1559

    def test_choose_kind_incomparable_sets(self):
        legacy = [{STANDARD: LEGACY(1), FAST: LEGACY(2)}]
        eip1559 = [{INSTANT: EIP(1, 1)}]

        assert choose_kind(legacy, eip1559) is GasPriceKind.LEGACY

    def test_normalize_mixed_result(self):
        mixed = {STANDARD: LEGACY(1), FAST: EIP(2, 1)}

        assert normalize_result(mixed) == {FAST: EIP(2, 1)}


# ============================================================
# AGGREGATION
# ============================================================

class TestAggregation:
    """Tests for per-tier aggregation."""

    LEGACY_PRICES = [
        {STANDARD: LEGACY(100), FAST: LEGACY(1000)},
        {STANDARD: LEGACY(500), FAST: LEGACY(900)},
    ]
    EIP_PRICES = [
        {STANDARD: EIP(100, 10), FAST: EIP(1000, 200)},
        {STANDARD: EIP(500, 100), FAST: EIP(900, 300)},
    ]

    async def aggregate(self, method, prices):
        sources = [FakeGasSource(price) for price in prices]
        return await AggregatorGasPriceSource(sources, method).get_gas_price(CHAIN_ID)

    @pytest.mark.asyncio
    async def test_legacy_max(self):
        result = await self.aggregate("max", self.LEGACY_PRICES)
        assert result == {STANDARD: LEGACY(500), FAST: LEGACY(1000)}

    @pytest.mark.asyncio
    async def test_legacy_min(self):
        result = await self.aggregate("min", self.LEGACY_PRICES)
        assert result == {STANDARD: LEGACY(100), FAST: LEGACY(900)}

    @pytest.mark.asyncio
    async def test_legacy_median(self):
        result = await self.aggregate("median", [
            {STANDARD: LEGACY(800), FAST: LEGACY(1100)},
            {STANDARD: LEGACY(100), FAST: LEGACY(1000)},
            {STANDARD: LEGACY(500), FAST: LEGACY(900)},
        ])
        assert result == {STANDARD: LEGACY(500), FAST: LEGACY(1000)}

    @pytest.mark.asyncio
    async def test_eip1559_max_per_sub_field(self):
        result = await self.aggregate("max", self.EIP_PRICES)
        assert result == {STANDARD: EIP(500, 100), FAST: EIP(1000, 300)}

    @pytest.mark.asyncio
    async def test_eip1559_min_per_sub_field(self):
        result = await self.aggregate("min", self.EIP_PRICES)
        assert result == {STANDARD: EIP(100, 10), FAST: EIP(900, 200)}

    @pytest.mark.asyncio
    async def test_eip1559_median(self):
        result = await self.aggregate("median", [
            {STANDARD: EIP(800, 100), FAST: EIP(1100, 300), INSTANT: EIP(1000, 200)},
            {STANDARD: EIP(100, 10), FAST: EIP(1000, 200), INSTANT: EIP(1500, 200)},
            {STANDARD: EIP(500, 100), FAST: EIP(900, 300), INSTANT: EIP(800, 200)},
        ])
        assert result == {
            STANDARD: EIP(500, 100),
            FAST: EIP(1000, 300),
            INSTANT: EIP(1000, 200),
        }

    @pytest.mark.asyncio
    async def test_median_of_even_count_takes_lower_middle(self):
        result = await self.aggregate("median", [
            {STANDARD: LEGACY(400)},
            {STANDARD: LEGACY(100)},
            {STANDARD: LEGACY(300)},
            {STANDARD: LEGACY(200)},
        ])
        assert result == {STANDARD: LEGACY(200)}

    @pytest.mark.asyncio
    async def test_tier_aggregated_over_reporting_sources_only(self):
        result = await self.aggregate("max", [
            {STANDARD: LEGACY(100), FAST: LEGACY(300)},
            {STANDARD: LEGACY(200)},
        ])
        assert result == {STANDARD: LEGACY(200), FAST: LEGACY(300)}
