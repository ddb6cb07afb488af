"""
Fastest Gas Price Source - first usable answer wins.

Every eligible source is queried concurrently. As soon as one of them
returns prices meeting the requirements, that result is returned; the
sources still running are abandoned and handed to the orphan tracker.
"""

import asyncio
import logging
from typing import Optional, Sequence

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import GasPriceResult, SpeedTier
from gas_sources.utils import filter_out_invalid_speeds
from source_core.chains import ChainId
from source_core.exceptions import (
    AllSourcesFailedError,
    NoSourcesError,
    UnmetRequirementsError,
)
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import (
    combine_support,
    meets_requirements,
    validate_requirements,
)
from source_core.timeouts import TimeString, orphan_tracker, with_timeout


logger = logging.getLogger(__name__)


class FastestGasPriceSource(BaseGasPriceSource):
    """Races sources against each other."""

    def __init__(self, sources: Sequence[BaseGasPriceSource], name: str = "fastest") -> None:
        if not sources:
            raise NoSourcesError()
        self._sources = list(sources)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        return combine_support(source.supported_speeds() for source in self._sources)

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        validate_requirements(self.supported_speeds(), [chain_id], requirements)

        tasks: dict[asyncio.Task, BaseGasPriceSource] = {}
        for source in self._sources:
            if source.can_support(chain_id, requirements):
                task = asyncio.ensure_future(
                    with_timeout(
                        source.get_gas_price(chain_id, requirements, timeout),
                        timeout,
                        description=f"{source.name} gas price on chain {chain_id}",
                    )
                )
                tasks[task] = source

        failures: dict[str, Exception] = {}
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    source = tasks[task]
                    if task.exception() is not None:
                        logger.warning(f"[{source.name}] Failed on chain {chain_id}: {task.exception()}")
                        failures[source.name] = task.exception()
                        continue
                    result = filter_out_invalid_speeds(task.result() or {})
                    if result and meets_requirements(result, requirements):
                        logger.debug(f"[{self.name}] {source.name} answered first on chain {chain_id}")
                        return result
                    failures[source.name] = UnmetRequirementsError(
                        "Response did not meet the given requirements",
                        chain_id=chain_id,
                        source_name=source.name,
                    )
        finally:
            for task in pending:
                orphan_tracker.track(task, f"{tasks[task].name} gas price on chain {chain_id}")

        logger.error(f"[{self.name}] All sources failed on chain {chain_id}")
        raise AllSourcesFailedError(
            "Failed to calculate gas on all sources",
            failures=failures,
            chain_id=chain_id,
        )
