"""
Quote Models - swap quote requests and responses.

Amounts are integers in the token's smallest unit. Slippage is a percentage
(1 means 1%).
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from source_core.chains import ChainId
from source_core.timeouts import TimeString


SourceId = str


@dataclass(frozen=True)
class SellOrder:
    """Sell exactly ``sell_amount``."""
    sell_amount: int

    type = "sell"

    def to_params(self) -> dict[str, Any]:
        return {"sellAmount": self.sell_amount}


@dataclass(frozen=True)
class BuyOrder:
    """Buy exactly ``buy_amount``."""
    buy_amount: int

    type = "buy"

    def to_params(self) -> dict[str, Any]:
        return {"buyAmount": self.buy_amount}


Order = Union[SellOrder, BuyOrder]


@dataclass(frozen=True)
class QuoteRequest:
    """A swap to quote on one chain, for one or more sources."""
    chain_id: ChainId
    sell_token: str
    buy_token: str
    order: Order
    slippage_percentage: float
    taker_address: str
    recipient: Optional[str] = None
    quote_timeout: Optional[TimeString] = None
    estimate_buy_orders_with_sell_only_sources: bool = False
    source_ids: tuple = ()

    def to_params(self) -> dict[str, Any]:
        """Flat query parameters. Unset options are left out."""
        params: dict[str, Any] = {
            "chainId": self.chain_id,
            "sellToken": self.sell_token,
            "buyToken": self.buy_token,
            "slippagePercentage": self.slippage_percentage,
            "takerAddress": self.taker_address,
            **self.order.to_params(),
        }
        if self.recipient:
            params["recipient"] = self.recipient
        if self.quote_timeout:
            params["quoteTimeout"] = self.quote_timeout
        if self.estimate_buy_orders_with_sell_only_sources:
            params["estimateBuyOrdersWithSellOnlySources"] = True
        return params


@dataclass(frozen=True)
class QuoteSourceMetadata:
    """What a quote source is and what it supports."""
    name: str
    chains: frozenset
    buy_orders: bool = False
    swap_and_transfer: bool = False
    logo_uri: Optional[str] = None

    def supports_chain(self, chain_id: ChainId) -> bool:
        return chain_id in self.chains

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "supports": {
                "chains": sorted(self.chains),
                "buyOrders": self.buy_orders,
                "swapAndTransfer": self.swap_and_transfer,
            },
            "logoURI": self.logo_uri,
        }


@dataclass(frozen=True)
class QuoteTx:
    to: str
    calldata: str
    value: int = 0


@dataclass(frozen=True)
class SourceQuoteResponse:
    """A source's quote, with slippage already applied to the limits."""
    sell_amount: int
    buy_amount: int
    max_sell_amount: int
    min_buy_amount: int
    allowance_target: str
    tx: QuoteTx
    estimated_gas: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sellAmount": str(self.sell_amount),
            "buyAmount": str(self.buy_amount),
            "maxSellAmount": str(self.max_sell_amount),
            "minBuyAmount": str(self.min_buy_amount),
            "allowanceTarget": self.allowance_target,
            "estimatedGas": str(self.estimated_gas) if self.estimated_gas is not None else None,
            "tx": {"to": self.tx.to, "calldata": self.tx.calldata, "value": str(self.tx.value)},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceQuoteResponse":
        """
        Raises:
            KeyError / ValueError: On malformed data
        """
        tx = data["tx"]
        estimated_gas = data.get("estimatedGas")
        return cls(
            sell_amount=int(data["sellAmount"]),
            buy_amount=int(data["buyAmount"]),
            max_sell_amount=int(data["maxSellAmount"]),
            min_buy_amount=int(data["minBuyAmount"]),
            allowance_target=data["allowanceTarget"],
            tx=QuoteTx(to=tx["to"], calldata=tx["calldata"], value=int(tx.get("value") or 0)),
            estimated_gas=int(estimated_gas) if estimated_gas is not None else None,
        )


@dataclass
class SourceListResponse:
    """Outcome of quoting with one source: a quote, or the captured failure."""
    source_id: SourceId
    quote: Optional[SourceQuoteResponse] = None
    error: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.quote is not None

    @classmethod
    def failed(cls, source_id: SourceId, error: Union[str, BaseException]) -> "SourceListResponse":
        return cls(source_id=source_id, error=str(error))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sourceId": self.source_id}
        if self.quote is not None:
            data["quote"] = self.quote.to_dict()
        else:
            data["failed"] = True
            data["error"] = self.error
        return data


def apply_slippage(
    order: Order,
    sell_amount: int,
    buy_amount: int,
    slippage_percentage: float,
) -> tuple[int, int]:
    """
    Limits a quote may execute at.

    Returns:
        (max_sell_amount, min_buy_amount). Sell orders keep the sell amount
        fixed; buy orders keep the buy amount fixed.
    """
    if slippage_percentage < 0:
        raise ValueError(f"Slippage must not be negative: {slippage_percentage}")
    basis_points = round(slippage_percentage * 100)
    if order.type == "sell":
        return sell_amount, buy_amount * (10000 - basis_points) // 10000
    return sell_amount * (10000 + basis_points) // 10000, buy_amount
