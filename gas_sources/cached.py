"""
Cached Gas Price Source - per-chain caching in front of another source.
"""

import asyncio
import logging
from typing import Optional

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import GasPriceResult, SpeedTier
from source_core.cache import CacheConfig, ConcurrentLRUCache
from source_core.chains import ChainId
from source_core.exceptions import UnmetRequirementsError
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import meets_requirements, validate_requirements
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


class CachedGasPriceSource(BaseGasPriceSource):
    """
    Caches the wrapped source's answer per chain id.

    The wrapped source is always asked without requirements, so one cached
    result serves every caller. A cached result lacking a tier the caller
    requires is reported as UnmetRequirementsError.

    Usage:
        cached = CachedGasPriceSource(aggregator, CacheConfig(use_cached_value="30s"))
        prices = await cached.get_gas_price(1, timeout="5s")
    """

    def __init__(self, source: BaseGasPriceSource, config: CacheConfig) -> None:
        self._source = source
        self._cache: ConcurrentLRUCache[ChainId, GasPriceResult] = ConcurrentLRUCache(
            calculate=self._fetch_gas_prices,
            config=config,
            name=f"cached-{source.name}",
        )

    @property
    def name(self) -> str:
        return f"cached-{self._source.name}"

    @property
    def cache(self) -> ConcurrentLRUCache[ChainId, GasPriceResult]:
        return self._cache

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        return self._source.supported_speeds()

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        validate_requirements(self.supported_speeds(), [chain_id], requirements)

        results = await self._cache.get_or_calculate([chain_id], timeout=timeout)
        result = results.get(chain_id)
        if not result or not meets_requirements(result, requirements):
            raise UnmetRequirementsError(
                "Could not fetch gas prices that met the given requirements",
                chain_id=chain_id,
                source_name=self.name,
            )
        return result

    async def _fetch_gas_prices(self, chain_ids: list[ChainId]) -> dict[ChainId, GasPriceResult]:
        outcomes = await asyncio.gather(
            *(self._source.get_gas_price(chain_id) for chain_id in chain_ids),
            return_exceptions=True,
        )
        results: dict[ChainId, GasPriceResult] = {}
        errors: list[BaseException] = []
        for chain_id, outcome in zip(chain_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{self.name}] Failed to refresh chain {chain_id}: {outcome}")
                errors.append(outcome)
            else:
                results[chain_id] = outcome

        if errors and not results:
            raise errors[0]
        return results
