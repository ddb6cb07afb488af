"""
Polygon Gas Station Source - EIP-1559 fee estimates for Polygon PoS.

Endpoint used:
- https://gasstation.polygon.technology/v2
"""

import logging
from typing import Any, Optional

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import Eip1559GasPrice, GasPriceResult, SpeedTier
from gas_sources.providers.etherscan import gwei_to_wei
from source_core.chains import Chain, ChainId
from source_core.exceptions import SourceError, UnsupportedChainError
from source_core.fetch import FetchService
from source_core.models import FieldsRequirements, SupportLevel, SupportRecord
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


class PolygonGasStationSource(BaseGasPriceSource):
    """Polygon's own gas station. Amounts are reported in gwei."""

    URL = "https://gasstation.polygon.technology/v2"

    # Gas station bucket -> our speed tier
    SPEED_MAP = {
        "safeLow": SpeedTier.STANDARD,
        "standard": SpeedTier.FAST,
        "fast": SpeedTier.INSTANT,
    }

    def __init__(self, fetch_service: FetchService, url: str = URL) -> None:
        self._fetch = fetch_service
        self._url = url

    @property
    def name(self) -> str:
        return "polygon_gas_station"

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        return {int(Chain.POLYGON): {tier: SupportLevel.PRESENT for tier in SpeedTier}}

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        if chain_id != Chain.POLYGON:
            raise UnsupportedChainError(chain_id, source_name=self.name)

        data = await self._fetch.fetch_json(self._url, timeout=timeout, source_name=self.name)
        return self.normalize(data)

    def normalize(self, data: Any) -> GasPriceResult:
        if not isinstance(data, dict):
            raise SourceError(f"Unexpected gas station response: {data!r}"[:300], source_name=self.name)

        result: GasPriceResult = {}
        try:
            for bucket, tier in self.SPEED_MAP.items():
                values = data.get(bucket)
                if not isinstance(values, dict):
                    continue
                result[tier] = Eip1559GasPrice(
                    max_fee_per_gas=gwei_to_wei(values["maxFee"]),
                    max_priority_fee_per_gas=gwei_to_wei(values["maxPriorityFee"]),
                )
        except (KeyError, ValueError) as e:
            raise SourceError(
                f"Failed to normalize gas station response: {e}",
                source_name=self.name,
                chain_id=int(Chain.POLYGON),
                original_error=e,
            )
        return result
