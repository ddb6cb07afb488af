"""
Gas Service - entry point for gas price consumers.

Wraps a (usually aggregated or cached) gas price source with pre-flight
validation, a default deadline and transaction cost calculation.
"""

import logging
from typing import Optional

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import GasCost, GasPriceResult, SpeedTier
from source_core.chains import ChainId
from source_core.exceptions import UnmetRequirementsError
from source_core.models import FieldsRequirements, SupportRecord
from source_core.requirements import meets_requirements, validate_requirements
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class GasService:
    """
    Gas prices and gas costs.

    Usage:
        service = GasService(build_gas_price_source(settings, fetch))
        prices = await service.get_gas_price(1, timeout="5s")
        costs = await service.calculate_gas_cost(1, gas_estimation=21000)
    """

    def __init__(
        self,
        source: BaseGasPriceSource,
        default_timeout: Optional[TimeString] = None,
    ) -> None:
        self._source = source
        self._default_timeout = default_timeout

    def supported_chains(self) -> list[ChainId]:
        return self._source.supported_chains()

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        return self._source.supported_speeds()

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        """
        Get gas prices for a chain.

        Raises:
            UnsupportedChainError: Before any request, if the chain is unknown
            UnmetRequirementsError: If the requirements cannot be (or were not) met
            OperationTimeoutError: If the deadline passes
        """
        validate_requirements(self.supported_speeds(), [chain_id], requirements)
        timeout = timeout or self._default_timeout
        result = await with_timeout(
            self._source.get_gas_price(chain_id, requirements, timeout),
            timeout,
            description=f"Gas price on chain {chain_id}",
        )
        if not meets_requirements(result, requirements):
            raise UnmetRequirementsError(
                "Could not fetch gas prices that met the given requirements",
                chain_id=chain_id,
                source_name=self._source.name,
            )
        return result

    async def calculate_gas_cost(
        self,
        chain_id: ChainId,
        gas_estimation: int,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> dict[SpeedTier, GasCost]:
        """
        Cost of spending ``gas_estimation`` gas at each available speed.

        EIP-1559 costs use the max fee, so they are an upper bound.
        """
        if gas_estimation < 0:
            raise ValueError(f"Gas estimation must not be negative: {gas_estimation}")

        prices = await self.get_gas_price(chain_id, requirements, timeout)
        costs = {
            tier: GasCost(
                gas_price=price,
                gas_cost_native_token=price.effective_price() * int(gas_estimation),
            )
            for tier, price in prices.items()
        }
        logger.debug(f"[gas] Calculated gas cost on chain {chain_id} for {len(costs)} speed(s)")
        return costs
