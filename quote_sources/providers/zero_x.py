"""
0x Quote Source - 0x Swap API.

Endpoint used:
- /swap/v1/quote

Requires an API key (sent as the 0x-api-key header). Slippage is sent to 0x
as a fraction and applied locally to compute the quote limits.
"""

import logging
from typing import Any, Optional

from quote_sources.base import BaseQuoteSource
from quote_sources.models import (
    QuoteRequest,
    QuoteSourceMetadata,
    QuoteTx,
    SourceQuoteResponse,
    apply_slippage,
)
from source_core.chains import Chain
from source_core.exceptions import ConfigurationError, SourceError, UnsupportedChainError
from source_core.fetch import FetchService
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


API_HOSTS = {
    Chain.ETHEREUM: "https://api.0x.org",
    Chain.OPTIMISM: "https://optimism.api.0x.org",
    Chain.BNB_CHAIN: "https://bsc.api.0x.org",
    Chain.POLYGON: "https://polygon.api.0x.org",
    Chain.FANTOM: "https://fantom.api.0x.org",
    Chain.BASE: "https://base.api.0x.org",
    Chain.ARBITRUM: "https://arbitrum.api.0x.org",
    Chain.AVALANCHE: "https://avalanche.api.0x.org",
}

ZRX_METADATA = QuoteSourceMetadata(
    name="0x/Matcha",
    chains=frozenset(int(chain_id) for chain_id in API_HOSTS),
    buy_orders=True,
    swap_and_transfer=False,
)


class ZeroExQuoteSource(BaseQuoteSource):

    def __init__(self, fetch_service: FetchService, api_key: str) -> None:
        if not api_key:
            raise ConfigurationError("0x API key is required", source_name="0x", config_key="api_key")
        self._fetch = fetch_service
        self._api_key = api_key

    def metadata(self) -> QuoteSourceMetadata:
        return ZRX_METADATA

    async def quote(
        self,
        request: QuoteRequest,
        timeout: Optional[TimeString] = None,
    ) -> SourceQuoteResponse:
        host = API_HOSTS.get(request.chain_id)
        if host is None:
            raise UnsupportedChainError(request.chain_id, source_name="0x")

        params: dict[str, Any] = {
            "sellToken": request.sell_token,
            "buyToken": request.buy_token,
            "takerAddress": request.taker_address,
            "slippagePercentage": request.slippage_percentage / 100,
            "skipValidation": "true",
        }
        if request.order.type == "sell":
            params["sellAmount"] = str(request.order.sell_amount)
        else:
            params["buyAmount"] = str(request.order.buy_amount)

        data = await self._fetch.fetch_json(
            f"{host}/swap/v1/quote",
            params=params,
            headers={"0x-api-key": self._api_key},
            timeout=timeout,
            source_name="0x",
        )
        return self.normalize(data, request)

    def normalize(self, data: Any, request: QuoteRequest) -> SourceQuoteResponse:
        try:
            sell_amount = int(data["sellAmount"])
            buy_amount = int(data["buyAmount"])
            max_sell_amount, min_buy_amount = apply_slippage(
                request.order, sell_amount, buy_amount, request.slippage_percentage,
            )
            estimated_gas = data.get("estimatedGas")
            return SourceQuoteResponse(
                sell_amount=sell_amount,
                buy_amount=buy_amount,
                max_sell_amount=max_sell_amount,
                min_buy_amount=min_buy_amount,
                allowance_target=data["allowanceTarget"],
                tx=QuoteTx(to=data["to"], calldata=data["data"], value=int(data.get("value") or 0)),
                estimated_gas=int(estimated_gas) if estimated_gas is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SourceError(
                f"Failed to normalize 0x quote: {e}",
                source_name="0x",
                chain_id=request.chain_id,
                original_error=e,
            )
