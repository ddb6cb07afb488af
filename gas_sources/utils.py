"""Helpers shared by gas price sources."""

from typing import Any, Mapping

from gas_sources.models import (
    Eip1559GasPrice,
    GasPriceKind,
    GasPriceResult,
    LegacyGasPrice,
)


def is_valid_gas_price(value: Any) -> bool:
    return isinstance(value, (LegacyGasPrice, Eip1559GasPrice)) and value.is_valid()


def filter_out_invalid_speeds(result: Mapping[Any, Any]) -> GasPriceResult:
    """Drop tiers whose value is not a well-formed gas price."""
    return {tier: price for tier, price in result.items() if is_valid_gas_price(price)}


def result_kind(result: GasPriceResult) -> GasPriceKind:
    """
    Kind of a (non-empty, homogeneous) result.

    Raises:
        ValueError: On an empty result
    """
    if not result:
        raise ValueError("Found a gas price result with nothing on it")
    return next(iter(result.values())).kind


def is_eip1559_result(result: GasPriceResult) -> bool:
    return result_kind(result) is GasPriceKind.EIP1559


def split_by_kind(result: GasPriceResult) -> dict[GasPriceKind, GasPriceResult]:
    """Split a possibly mixed result into homogeneous parts."""
    parts: dict[GasPriceKind, GasPriceResult] = {}
    for tier, price in result.items():
        parts.setdefault(price.kind, {})[tier] = price
    return parts
