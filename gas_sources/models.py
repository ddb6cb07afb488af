"""
Gas Price Models - normalized gas price structures.

A gas price is a tagged variant: either a legacy price or an EIP-1559 fee
pair. All amounts are integers in wei.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class SpeedTier(Enum):
    """Confirmation speed a gas price targets."""
    STANDARD = "standard"
    FAST = "fast"
    INSTANT = "instant"


class GasPriceKind(Enum):
    LEGACY = "legacy"
    EIP1559 = "eip1559"


@dataclass(frozen=True)
class LegacyGasPrice:
    """Pre-London price: a single gas price."""
    gas_price: int

    kind = GasPriceKind.LEGACY

    def is_valid(self) -> bool:
        return isinstance(self.gas_price, int) and self.gas_price > 0

    def effective_price(self) -> int:
        return self.gas_price

    def to_dict(self) -> dict[str, str]:
        return {"gasPrice": str(self.gas_price)}


@dataclass(frozen=True)
class Eip1559GasPrice:
    """EIP-1559 price: max fee and max priority fee."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    kind = GasPriceKind.EIP1559

    def is_valid(self) -> bool:
        return (
            isinstance(self.max_fee_per_gas, int)
            and isinstance(self.max_priority_fee_per_gas, int)
            and self.max_fee_per_gas > 0
            and self.max_priority_fee_per_gas >= 0
        )

    def effective_price(self) -> int:
        """Upper bound the sender may pay per gas."""
        return self.max_fee_per_gas

    def to_dict(self) -> dict[str, str]:
        return {
            "maxFeePerGas": str(self.max_fee_per_gas),
            "maxPriorityFeePerGas": str(self.max_priority_fee_per_gas),
        }


GasPrice = Union[LegacyGasPrice, Eip1559GasPrice]


@dataclass(frozen=True)
class GasCost:
    """Price paid per gas and the resulting cost of a transaction, in wei."""
    gas_price: GasPrice
    gas_cost_native_token: int

    def to_dict(self) -> dict[str, str]:
        return {
            **self.gas_price.to_dict(),
            "gasCostNativeToken": str(self.gas_cost_native_token),
        }


# Speed tier -> price. Within one result every tier has the same kind.
GasPriceResult = dict[SpeedTier, GasPrice]


def gas_price_from_dict(data: dict[str, Any]) -> GasPrice:
    """
    Parse the usual JSON shapes ({"gasPrice"} or {"maxFeePerGas", ...}).

    Raises:
        ValueError: If neither shape is present
    """
    if "maxFeePerGas" in data:
        return Eip1559GasPrice(
            max_fee_per_gas=int(data["maxFeePerGas"]),
            max_priority_fee_per_gas=int(data["maxPriorityFeePerGas"]),
        )
    if "gasPrice" in data:
        return LegacyGasPrice(gas_price=int(data["gasPrice"]))
    raise ValueError(f"Not a gas price: {data!r}")


def result_to_dict(result: GasPriceResult) -> dict[str, dict[str, str]]:
    """Convert to dictionary for serialization."""
    return {tier.value: price.to_dict() for tier, price in result.items()}
