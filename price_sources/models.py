"""
Price Models - token prices as reported by price sources.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from source_core.chains import ChainId


TokenAddress = str


class PriceQuery(Enum):
    """Kinds of price query a source may answer on a chain."""
    CURRENT_PRICES = "current_prices"
    HISTORICAL_PRICES = "historical_prices"


@dataclass(frozen=True)
class PriceResult:
    """USD price of a token and the (unix, seconds) time it was observed at."""
    price: float
    closest_timestamp: int

    def is_valid(self) -> bool:
        return isinstance(self.price, (int, float)) and self.price >= 0

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "closestTimestamp": self.closest_timestamp}


# Chain -> token -> price
PricesByChain = dict[ChainId, dict[TokenAddress, PriceResult]]

# Chain -> queries answered on that chain
PriceQuerySupport = dict[ChainId, frozenset]
