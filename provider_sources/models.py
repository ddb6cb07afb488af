"""
Provider Models - RPC endpoints handed out by provider sources.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from source_core.chains import ChainId


class ProviderClient(Enum):
    """Transport a provider endpoint is reached over."""
    HTTP = "http"
    WEBSOCKET = "websocket"

    @classmethod
    def for_url(cls, url: str) -> "ProviderClient":
        """
        Raises:
            ValueError: If the URL scheme is neither http(s) nor ws(s)
        """
        scheme = url.split("://", 1)[0].lower()
        if scheme in ("http", "https"):
            return cls.HTTP
        if scheme in ("ws", "wss"):
            return cls.WEBSOCKET
        raise ValueError(f"Unsupported RPC url scheme: {url!r}")


@dataclass(frozen=True)
class RpcEndpoint:
    """A JSON-RPC endpoint for one chain."""
    chain_id: ChainId
    url: str
    client: ProviderClient = ProviderClient.HTTP

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "url": self.url,
            "client": self.client.value,
        }


# Chain -> clients a source can hand out on that chain
ProviderClientSupport = dict[ChainId, frozenset]
