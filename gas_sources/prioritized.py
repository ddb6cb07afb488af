"""
Prioritized Gas Price Source - sequential fallback in caller order.
"""

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
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class PrioritizedGasPriceSource(BaseGasPriceSource):
    """
    Tries sources one at a time, in the order given.

    The first response that meets the requirements wins. A failing source
    (error, timeout, unusable response) falls through to the next one.
    """

    def __init__(self, sources: Sequence[BaseGasPriceSource], name: str = "prioritized") -> None:
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

        failures: dict[str, Exception] = {}
        for source in self._sources:
            if not source.can_support(chain_id, requirements):
                continue
            try:
                result = await with_timeout(
                    source.get_gas_price(chain_id, requirements, timeout),
                    timeout,
                    description=f"{source.name} gas price on chain {chain_id}",
                )
            except Exception as e:
                logger.warning(f"[{source.name}] Failed on chain {chain_id}, falling back: {e}")
                failures[source.name] = e
                continue

            result = filter_out_invalid_speeds(result or {})
            if result and meets_requirements(result, requirements):
                return result

            logger.warning(f"[{source.name}] Unusable gas prices on chain {chain_id}, falling back")
            failures[source.name] = UnmetRequirementsError(
                "Response did not meet the given requirements",
                chain_id=chain_id,
                source_name=source.name,
            )

        logger.error(f"[{self.name}] All sources failed on chain {chain_id}")
        raise AllSourcesFailedError(
            "Failed to calculate gas on all sources",
            failures=failures,
            chain_id=chain_id,
        )
