"""
Timeout Envelope - deadlines for asynchronous operations.

Most transports offer no cooperative cancellation, so an expired operation
is abandoned rather than cancelled: the caller gets OperationTimeoutError
immediately while the work keeps running in the background. Abandoned work
is registered with the OrphanTracker so it is logged instead of silently
discarded.

Durations are human readable strings ("250ms", "10s", "5m", "1w"). A bare
number is taken as milliseconds.
"""

import asyncio
import logging
import re
from typing import Awaitable, Optional, TypeVar, Union

from source_core.exceptions import OperationTimeoutError


logger = logging.getLogger(__name__)

T = TypeVar("T")

TimeString = str

_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "y": 365.25 * 24 * 60 * 60 * 1000,
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w|y)?\s*$", re.IGNORECASE)


def to_milliseconds(duration: Union[TimeString, int, float, None]) -> Optional[int]:
    """
    Parse a duration to milliseconds.

    Args:
        duration: "10s", "5m", "1w", "100" (ms), a number (ms) or None

    Returns:
        Milliseconds, or None when no duration was given

    Raises:
        ValueError: If the string cannot be parsed
    """
    if duration is None:
        return None
    if isinstance(duration, (int, float)):
        return int(duration)
    match = _DURATION_RE.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")
    amount, unit = match.groups()
    return int(float(amount) * _UNIT_MS[(unit or "ms").lower()])


def to_seconds(duration: Union[TimeString, int, float, None]) -> Optional[float]:
    ms = to_milliseconds(duration)
    return None if ms is None else ms / 1000


def reduce_timeout(
    timeout: Optional[TimeString],
    reduce_by: TimeString,
) -> Optional[TimeString]:
    """
    Shrink a timeout by a fixed margin.

    Used when forwarding a deadline to a slower downstream hop, so the local
    envelope still has time to react after the remote side gives up. If the
    margin is not smaller than the timeout, the timeout is returned as is.
    """
    if timeout is None:
        return None
    timeout_ms = to_milliseconds(timeout)
    margin_ms = to_milliseconds(reduce_by)
    if margin_ms >= timeout_ms:
        return timeout
    return str(timeout_ms - margin_ms)


class OrphanTracker:
    """
    Keeps track of operations abandoned after a timeout.

    Orphans are not cancelled. When one finishes, its outcome is retrieved
    and logged, so failures never end up as "exception was never retrieved".
    """

    def __init__(self) -> None:
        self._orphans: dict[asyncio.Future, str] = {}
        self._completed = 0
        self._failed = 0

    def track(self, task: asyncio.Future, description: str) -> None:
        if task.done():
            self._consume(task, description)
            return
        self._orphans[task] = description
        task.add_done_callback(self._on_done)
        logger.warning(f"Abandoned '{description}' after timeout; it keeps running in the background")

    def _on_done(self, task: asyncio.Future) -> None:
        description = self._orphans.pop(task, "operation")
        self._consume(task, description)

    def _consume(self, task: asyncio.Future, description: str) -> None:
        if task.cancelled():
            logger.debug(f"Orphaned '{description}' was cancelled")
            return
        error = task.exception()
        if error is not None:
            self._failed += 1
            logger.warning(f"Orphaned '{description}' failed after its deadline: {error}")
        else:
            self._completed += 1
            logger.debug(f"Orphaned '{description}' completed after its deadline; result discarded")

    def pending(self) -> int:
        """Number of abandoned operations still running."""
        return len(self._orphans)

    def stats(self) -> dict[str, int]:
        return {
            "pending": len(self._orphans),
            "completed": self._completed,
            "failed": self._failed,
        }


orphan_tracker = OrphanTracker()


def orphaned_operations() -> int:
    """Number of operations abandoned after a timeout that are still running."""
    return orphan_tracker.pending()


async def with_timeout(
    operation: Awaitable[T],
    timeout: Optional[TimeString],
    *,
    description: Optional[str] = None,
    reduce_by: Optional[TimeString] = None,
) -> T:
    """
    Await an operation with an optional deadline.

    Args:
        operation: Coroutine or future to run
        timeout: Deadline ("10s", ...); None means no deadline
        description: Used in the timeout error and orphan logs
        reduce_by: Margin subtracted from the timeout first

    Returns:
        The operation's result

    Raises:
        OperationTimeoutError: If the deadline passes first. The operation is
            NOT cancelled; it is tracked as an orphan.
    """
    if timeout is None:
        return await operation

    effective = reduce_timeout(timeout, reduce_by) if reduce_by else timeout
    seconds = to_milliseconds(effective) / 1000
    task = asyncio.ensure_future(operation)

    try:
        done, _ = await asyncio.wait({task}, timeout=seconds)
    except asyncio.CancelledError:
        # The caller went away; nobody will read the result anymore
        orphan_tracker.track(task, description or "operation")
        raise

    if task in done:
        return task.result()

    orphan_tracker.track(task, description or "operation")
    raise OperationTimeoutError(timeout, description)
