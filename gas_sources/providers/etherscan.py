"""
Etherscan Gas Price Source - gas oracle of the Etherscan family of explorers.

Endpoint used:
- /api?module=gastracker&action=gasoracle

Prices are reported in gwei. When the oracle also reports suggestBaseFee the
chain is EIP-1559 and each price becomes a max fee, with the priority fee
being the price minus the base fee. Otherwise prices are legacy.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from gas_sources.base import BaseGasPriceSource
from gas_sources.models import (
    Eip1559GasPrice,
    GasPrice,
    GasPriceResult,
    LegacyGasPrice,
    SpeedTier,
)
from source_core.chains import Chain, ChainId
from source_core.exceptions import SourceError, UnsupportedChainError
from source_core.fetch import FetchService
from source_core.models import FieldsRequirements, SupportLevel, SupportRecord
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


GWEI = Decimal(10) ** 9


def gwei_to_wei(amount: Any) -> int:
    """Convert a gwei amount ("12.5", 12.5, ...) to integer wei."""
    try:
        return int(Decimal(str(amount)) * GWEI)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid gwei amount: {amount!r}") from e


def calculate_gas(price: Any, base_fee: Optional[Any] = None) -> GasPrice:
    gas_price = gwei_to_wei(price)
    if not base_fee:
        return LegacyGasPrice(gas_price=gas_price)
    return Eip1559GasPrice(
        max_fee_per_gas=gas_price,
        max_priority_fee_per_gas=gas_price - gwei_to_wei(base_fee),
    )


class EtherscanGasPriceSource(BaseGasPriceSource):
    """
    Gas oracle of etherscan.io and its sibling explorers.

    API keys are optional and given per chain; without one the public rate
    limit applies.
    """

    EXPLORERS = {
        Chain.ETHEREUM: "etherscan.io",
        Chain.POLYGON: "polygonscan.com",
        Chain.BNB_CHAIN: "bscscan.com",
        Chain.FANTOM: "ftmscan.com",
    }

    # Oracle field -> our speed tier
    SPEED_MAP = {
        "SafeGasPrice": SpeedTier.STANDARD,
        "ProposeGasPrice": SpeedTier.FAST,
        "FastGasPrice": SpeedTier.INSTANT,
    }

    def __init__(
        self,
        fetch_service: FetchService,
        api_keys: Optional[dict[ChainId, str]] = None,
    ) -> None:
        self._fetch = fetch_service
        self._api_keys = api_keys or {}

    @property
    def name(self) -> str:
        return "etherscan"

    def supported_speeds(self) -> dict[ChainId, SupportRecord]:
        support = {tier: SupportLevel.PRESENT for tier in SpeedTier}
        return {int(chain_id): dict(support) for chain_id in self.EXPLORERS}

    async def get_gas_price(
        self,
        chain_id: ChainId,
        requirements: Optional[FieldsRequirements[SpeedTier]] = None,
        timeout: Optional[TimeString] = None,
    ) -> GasPriceResult:
        explorer = self.EXPLORERS.get(chain_id)
        if explorer is None:
            raise UnsupportedChainError(chain_id, source_name=self.name)

        params = {"module": "gastracker", "action": "gasoracle"}
        api_key = self._api_keys.get(chain_id)
        if api_key:
            params["apikey"] = api_key

        data = await self._fetch.fetch_json(
            f"https://api.{explorer}/api",
            params=params,
            timeout=timeout,
            source_name=self.name,
        )
        return self.normalize(data, chain_id)

    def normalize(self, data: Any, chain_id: ChainId) -> GasPriceResult:
        """Convert an oracle response to a gas price result."""
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise SourceError(
                f"Unexpected gas oracle response: {data!r}"[:300],
                source_name=self.name,
                chain_id=chain_id,
            )

        base_fee = result.get("suggestBaseFee")
        try:
            return {
                tier: calculate_gas(result[field_name], base_fee)
                for field_name, tier in self.SPEED_MAP.items()
                if result.get(field_name) is not None
            }
        except ValueError as e:
            raise SourceError(
                f"Failed to normalize gas oracle response: {e}",
                source_name=self.name,
                chain_id=chain_id,
                original_error=e,
            )
