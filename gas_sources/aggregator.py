"""
Aggregator Gas Price Source - merges many sources into one result.

Request lifecycle:
    PENDING     pre-flight validation (no I/O)
    COLLECTING  every eligible source queried concurrently, no early exit
    MERGED      surviving results normalized and aggregated per tier
    RETURNED

or FAILED(Unsupported / UnmetRequirements) before any I/O, or
FAILED(AllSourcesFailed) when nothing survives.

Normalization: legacy and EIP-1559 results cannot be mixed. The kind whose
results cover a superset of the other kind's tiers wins; on a tie EIP-1559
wins. Each numeric sub-field is then aggregated independently per tier, over
the sources that reported that tier.
"""

import asyncio
import logging
from typing import Optional, Sequence, Union

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import (
    Eip1559GasPrice,
    GasPriceKind,
    GasPriceResult,
    LegacyGasPrice,
    SpeedTier,
)
from gas_sources.utils import filter_out_invalid_speeds, split_by_kind
from source_core.aggregation import AggregationMethod
from source_core.chains import ChainId
from source_core.exceptions import (
    AllSourcesFailedError,
    NoSourcesError,
    SourceError,
    UnmetRequirementsError,
)
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import (
    combine_support,
    meets_requirements,
    validate_requirements,
)
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class AggregatorGasPriceSource(BaseGasPriceSource):
    """
    Queries every source supporting a chain and merges their answers with
    a fixed aggregation method (min, max or median).

    Usage:
        source = AggregatorGasPriceSource([etherscan, gas_station], "median")
        prices = await source.get_gas_price(chain_id=1, timeout="5s")
    """

    def __init__(
        self,
        sources: Sequence[BaseGasPriceSource],
        method: Union[AggregationMethod, str] = AggregationMethod.MEDIAN,
        name: str = "aggregator",
    ) -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._method = AggregationMethod.of(method)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def method(self) -> AggregationMethod:
        return self._method

    @property
    def sources(self) -> list[BaseGasPriceSource]:
        return list(self._sources)

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        """Union of every source's declared support."""
        return combine_support(source.supported_speeds() for source in self._sources)

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        validate_requirements(self.supported_speeds(), [chain_id], requirements)

        eligible = [source for source in self._sources if source.can_support(chain_id, requirements)]
        if not eligible:
            raise UnmetRequirementsError(
                f"No single source on chain {chain_id} can support the given requirements",
                chain_id=chain_id,
            )

        outcomes = await asyncio.gather(
            *(
                with_timeout(
                    source.get_gas_price(chain_id, requirements, timeout),
                    timeout,
                    description=f"{source.name} gas price on chain {chain_id}",
                )
                for source in eligible
            ),
            return_exceptions=True,
        )

        survivors: list[GasPriceResult] = []
        failures: dict[str, Exception] = {}
        for source, outcome in zip(eligible, outcomes):
            key = _failure_key(failures, source.name)
            if isinstance(outcome, BaseException):
                logger.warning(f"[{source.name}] Failed to fetch gas price on chain {chain_id}: {outcome}")
                failures[key] = outcome
                continue

            result = filter_out_invalid_speeds(outcome or {})
            if not result:
                logger.warning(f"[{source.name}] Returned no valid gas prices on chain {chain_id}")
                failures[key] = SourceError("Returned no valid gas prices", source_name=source.name, chain_id=chain_id)
            elif not meets_requirements(result, requirements):
                logger.warning(f"[{source.name}] Gas prices on chain {chain_id} did not meet the requirements")
                failures[key] = UnmetRequirementsError(
                    "Response did not meet the given requirements",
                    chain_id=chain_id,
                    source_name=source.name,
                )
            else:
                survivors.append(result)

        if not survivors:
            if all(isinstance(error, UnmetRequirementsError) for error in failures.values()):
                message = "Could not fetch gas prices that met the given requirements"
            else:
                message = "Failed to calculate gas on all sources"
            logger.error(f"[{self.name}] {message} on chain {chain_id}: {list(failures)}")
            raise AllSourcesFailedError(message, failures=failures, chain_id=chain_id)

        return self.merge(survivors)

    def merge(self, results: Sequence[GasPriceResult]) -> GasPriceResult:
        """
        Normalize and aggregate non-empty, valid results.

        Raises:
            ValueError: If there is nothing to merge
        """
        if not results:
            raise ValueError("Nothing to merge")

        by_kind: dict[GasPriceKind, list[GasPriceResult]] = {}
        for result in results:
            normalized = normalize_result(result)
            kind = next(iter(normalized.values())).kind
            by_kind.setdefault(kind, []).append(normalized)

        kind = choose_kind(
            by_kind.get(GasPriceKind.LEGACY, []),
            by_kind.get(GasPriceKind.EIP1559, []),
        )
        return self._aggregate(kind, by_kind[kind])

    def _aggregate(self, kind: GasPriceKind, results: list[GasPriceResult]) -> GasPriceResult:
        merged: GasPriceResult = {}
        for tier in SpeedTier:
            prices = [result[tier] for result in results if tier in result]
            if not prices:
                continue
            if kind is GasPriceKind.LEGACY:
                merged[tier] = LegacyGasPrice(
                    gas_price=self._method.apply([price.gas_price for price in prices]),
                )
            else:
                merged[tier] = Eip1559GasPrice(
                    max_fee_per_gas=self._method.apply([price.max_fee_per_gas for price in prices]),
                    max_priority_fee_per_gas=self._method.apply(
                        [price.max_priority_fee_per_gas for price in prices]
                    ),
                )
        return merged


def _covered_tiers(results: Sequence[GasPriceResult]) -> set[SpeedTier]:
    return {tier for result in results for tier in result}


def _prefers_legacy(legacy_tiers: set[SpeedTier], eip1559_tiers: set[SpeedTier]) -> bool:
    if legacy_tiers > eip1559_tiers:
        return True
    if legacy_tiers <= eip1559_tiers:
        return False
    # Neither covers the other: richer coverage wins, ties go to EIP-1559
    return len(legacy_tiers) > len(eip1559_tiers)


def choose_kind(
    legacy: Sequence[GasPriceResult],
    eip1559: Sequence[GasPriceResult],
) -> GasPriceKind:
    """Pick which kind of result the merge keeps."""
    if not eip1559:
        return GasPriceKind.LEGACY
    if not legacy:
        return GasPriceKind.EIP1559
    if _prefers_legacy(_covered_tiers(legacy), _covered_tiers(eip1559)):
        return GasPriceKind.LEGACY
    return GasPriceKind.EIP1559


def normalize_result(result: GasPriceResult) -> GasPriceResult:
    """Make a single result homogeneous, keeping the richer-coverage kind."""
    parts = split_by_kind(result)
    if len(parts) == 1:
        return result
    legacy = parts[GasPriceKind.LEGACY]
    eip1559 = parts[GasPriceKind.EIP1559]
    return legacy if _prefers_legacy(set(legacy), set(eip1559)) else eip1559


def _failure_key(failures: dict[str, Exception], name: str) -> str:
    if name not in failures:
        return name
    index = 2
    while f"{name}#{index}" in failures:
        index += 1
    return f"{name}#{index}"
