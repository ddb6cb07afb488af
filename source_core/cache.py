"""
Concurrent Deduplicating Cache.

Serves cached values, and computes missing ones through a BATCH calculate
function with at most one in-flight calculation per key: a caller asking for
a key that is already being calculated joins that calculation instead of
starting a new one.

Marking keys as in-flight never crosses an ``await``, so the invariant holds
under asyncio's single-threaded scheduling without locks.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Hashable,
    Iterable,
    Mapping,
    Optional,
    TypeVar,
)

from source_core.exceptions import ConfigurationError, OperationTimeoutError
from source_core.timeouts import TimeString, to_milliseconds, with_timeout


logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ALWAYS = "always"
NEVER = "never"
IF_FRESH = "if-fresh"

_MISSING = object()


@dataclass(frozen=True)
class CacheConfig:
    """
    Freshness policy of a cache instance.

    use_cached_value:
        "always"   - a stored value never expires
        "if-fresh" - valid while younger than ``freshness``
        "<duration>" - valid while younger than that duration
    use_cached_value_if_calculation_failed:
        "always" | "never" | "<duration>" - whether an expired value may be
        served when recalculating it fails
    max_size:
        Least recently used entries are evicted beyond this size (None = unbounded)
    """
    use_cached_value: str = IF_FRESH
    use_cached_value_if_calculation_failed: str = NEVER
    freshness: TimeString = "1m"
    max_size: Optional[int] = None

    def __post_init__(self) -> None:
        try:
            if self.use_cached_value not in (ALWAYS, IF_FRESH):
                to_milliseconds(self.use_cached_value)
            if self.use_cached_value_if_calculation_failed not in (ALWAYS, NEVER):
                to_milliseconds(self.use_cached_value_if_calculation_failed)
            to_milliseconds(self.freshness)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid cache configuration: {e}",
                config_key="cache",
                original_error=e,
            )
        if self.max_size is not None and self.max_size < 1:
            raise ConfigurationError("max_size must be positive", config_key="cache.max_size")

    def max_age_ms(self) -> Optional[int]:
        """Age under which a value is valid, None if it never expires."""
        if self.use_cached_value == ALWAYS:
            return None
        if self.use_cached_value == IF_FRESH:
            return to_milliseconds(self.freshness)
        return to_milliseconds(self.use_cached_value)

    def stale_max_age_ms(self) -> Optional[int]:
        """Age under which a value may be served after a failed calculation (-1 = never)."""
        policy = self.use_cached_value_if_calculation_failed
        if policy == NEVER:
            return -1
        if policy == ALWAYS:
            return None
        return to_milliseconds(policy)


@dataclass
class CacheEntry(Generic[V]):
    """A stored value and the monotonic time (seconds) it was stored at."""
    value: V
    stored_at: float

    def age_ms(self, now: float) -> float:
        return (now - self.stored_at) * 1000


class ConcurrentLRUCache(Generic[K, V]):
    """
    Batch-computing cache with per-key request deduplication.

    Usage:
        cache = ConcurrentLRUCache(
            calculate=fetch_prices,          # async (keys) -> {key: value}
            config=CacheConfig(use_cached_value="30s"),
        )
        prices = await cache.get_or_calculate(keys, timeout="5s")

    ``calculate`` receives every distinct key that is neither cached nor
    in flight, in one call, and returns a per-key map. Keys missing from that
    map are simply absent from the result.
    """

    def __init__(
        self,
        calculate: Callable[[list[K]], Awaitable[Mapping[K, V]]],
        config: CacheConfig,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._calculate = calculate
        self._config = config
        self._name = name
        self._clock = clock

        self._entries: "OrderedDict[K, CacheEntry[V]]" = OrderedDict()
        self._in_flight: dict[K, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

        # Stats
        self._hits = 0
        self._misses = 0
        self._joins = 0
        self._calculations = 0
        self._stale_served = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CacheConfig:
        return self._config

    def holds_valid_value(self, key: K) -> bool:
        """True if the key is stored and still valid under the freshness policy."""
        entry = self._entries.get(key)
        return entry is not None and self._is_valid(entry)

    def is_calculating(self, key: K) -> bool:
        return key in self._in_flight

    async def get_or_calculate(
        self,
        keys: Iterable[K],
        timeout: Optional[TimeString] = None,
    ) -> dict[K, V]:
        """
        Get values for keys, calculating the ones that are not valid.

        Args:
            keys: Keys to resolve (duplicates are collapsed)
            timeout: Deadline for this call, applied to the batch calculation it
                starts and to calculations it joins. Joined calculations are
                never cancelled by it.

        Returns:
            Per-key map; keys the calculation did not return are omitted

        Raises:
            The calculation's error (or OperationTimeoutError), unless every
            failed key can be served stale under the config
        """
        result: dict[K, V] = {}
        pending: dict[K, asyncio.Future] = {}
        to_calculate: list[K] = []

        for key in dict.fromkeys(keys):
            entry = self._entries.get(key)
            if entry is not None and self._is_valid(entry):
                self._entries.move_to_end(key)
                result[key] = entry.value
                self._hits += 1
            elif key in self._in_flight:
                pending[key] = self._in_flight[key]
                self._joins += 1
            else:
                to_calculate.append(key)
                self._misses += 1

        if to_calculate:
            pending.update(self._start_calculation(to_calculate, timeout))

        if not pending:
            logger.debug(f"[{self._name}] Cache hit for all {len(result)} key(s)")
            return result

        joined = set(pending) - set(to_calculate)
        if timeout is not None and joined:
            # Joined calculations may have been started without a deadline
            await asyncio.wait({pending[key] for key in joined}, timeout=to_milliseconds(timeout) / 1000)

        first_error: Optional[Exception] = None
        for key, future in pending.items():
            try:
                if key in joined and timeout is not None and not future.done():
                    raise OperationTimeoutError(timeout, f"{self._name} lookup of {key!r}")
                found, value = await asyncio.shield(future)
            except Exception as e:
                stale = self._stale_value(key)
                if stale is _MISSING:
                    first_error = first_error or e
                else:
                    result[key] = stale
                continue
            if found:
                result[key] = value

        if first_error is not None:
            raise first_error
        return result

    def populate(self, values: Mapping[K, V]) -> None:
        """Store values computed elsewhere."""
        now = self._clock()
        for key, value in values.items():
            self._store(key, value, now)

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every stored value. In-flight calculations are left alone."""
        self._entries.clear()
        logger.info(f"[{self._name}] Cache cleared")

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        lookups = self._hits + self._misses + self._joins
        return {
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            "hits": self._hits,
            "misses": self._misses,
            "joins": self._joins,
            "calculations": self._calculations,
            "stale_served": self._stale_served,
            "hit_rate": (self._hits / lookups * 100) if lookups else 0.0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    def _is_valid(self, entry: CacheEntry[V]) -> bool:
        max_age = self._config.max_age_ms()
        return max_age is None or entry.age_ms(self._clock()) <= max_age

    def _stale_value(self, key: K) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        max_age = self._config.stale_max_age_ms()
        if max_age is not None and (max_age < 0 or entry.age_ms(self._clock()) > max_age):
            return _MISSING
        self._stale_served += 1
        logger.warning(
            f"[{self._name}] Calculation failed, serving stale value "
            f"(age={entry.age_ms(self._clock()):.0f}ms)"
        )
        return entry.value

    def _start_calculation(
        self,
        keys: list[K],
        timeout: Optional[TimeString],
    ) -> dict[K, asyncio.Future]:
        loop = asyncio.get_running_loop()
        futures: dict[K, asyncio.Future] = {}
        for key in keys:
            future = loop.create_future()
            future.add_done_callback(_retrieve_outcome)
            futures[key] = future
        self._in_flight.update(futures)
        self._calculations += 1

        task = loop.create_task(self._run_calculation(keys, futures, timeout))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"[{self._name}] Calculating {len(keys)} key(s)")
        return futures

    async def _run_calculation(
        self,
        keys: list[K],
        futures: dict[K, asyncio.Future],
        timeout: Optional[TimeString],
    ) -> None:
        try:
            values = await with_timeout(
                self._calculate(list(keys)),
                timeout,
                description=f"{self._name} calculation of {len(keys)} key(s)",
            )
        except Exception as e:
            logger.warning(f"[{self._name}] Calculation of {len(keys)} key(s) failed: {e}")
            for key, future in futures.items():
                self._release(key, future)
                if not future.done():
                    future.set_exception(e)
            return
        except asyncio.CancelledError:
            # Never leave joiners hanging
            for key, future in futures.items():
                self._release(key, future)
                future.cancel()
            raise

        values = values or {}
        now = self._clock()
        for key, future in futures.items():
            self._release(key, future)
            if future.done():
                continue
            if key in values:
                self._store(key, values[key], now)
                future.set_result((True, values[key]))
            else:
                future.set_result((False, None))

    def _release(self, key: K, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]

    def _store(self, key: K, value: V, now: float) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=now)
        self._entries.move_to_end(key)
        max_size = self._config.max_size
        while max_size is not None and len(self._entries) > max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"[{self._name}] Evicted {evicted!r}")


def _retrieve_outcome(future: asyncio.Future) -> None:
    # Joiners may have gone away; mark the exception as retrieved
    if not future.cancelled():
        future.exception()
