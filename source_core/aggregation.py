"""
Aggregation Methods - statistical merge policies across source results.

Median over an even number of values picks the LOWER-middle element, so the
result is always one of the reported values (integers in wei stay integers).
"""

from enum import Enum
from typing import Callable, Sequence, TypeVar, Union


T = TypeVar("T")


class AggregationMethod(Enum):
    """Merge policy fixed at aggregator construction."""
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"

    @classmethod
    def of(cls, method: Union["AggregationMethod", str]) -> "AggregationMethod":
        if isinstance(method, cls):
            return method
        try:
            return cls(str(method).lower())
        except ValueError:
            raise ValueError(
                f"Unknown aggregation method {method!r}, expected one of "
                f"{', '.join(m.value for m in cls)}"
            ) from None

    def apply(self, values: Sequence[T]) -> T:
        """Aggregate plain comparable values."""
        return self.select(values, key=lambda value: value)

    def select(self, items: Sequence[T], key: Callable[[T], float]) -> T:
        """
        Pick one item according to the method, comparing by ``key``.

        Raises:
            ValueError: If there is nothing to aggregate
        """
        if not items:
            raise ValueError("Cannot aggregate an empty set of values")
        if self is AggregationMethod.MIN:
            return min(items, key=key)
        if self is AggregationMethod.MAX:
            return max(items, key=key)
        ordered = sorted(items, key=key)
        return ordered[(len(ordered) - 1) // 2]
