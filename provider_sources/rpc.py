"""
JSON-RPC Client - minimal eth JSON-RPC over http.

Only what the bundled sources need: single requests over an http endpoint.
"""

import itertools
import logging
from typing import Any, Optional

from provider_sources.models import ProviderClient, RpcEndpoint
from source_core.exceptions import OperationNotSupportedError, SourceError
from source_core.fetch import FetchService
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)


class RpcError(SourceError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = code


class JsonRpcClient:
    """
    Usage:
        client = JsonRpcClient(fetch, combinator.get_provider(1))
        balance = int(await client.request("eth_getBalance", [account, "latest"]), 16)
    """

    def __init__(self, fetch_service: FetchService, endpoint: RpcEndpoint) -> None:
        if endpoint.client is not ProviderClient.HTTP:
            raise OperationNotSupportedError(
                f"JSON-RPC over {endpoint.client.value} is not supported",
                chain_id=endpoint.chain_id,
            )
        self._fetch = fetch_service
        self._endpoint = endpoint
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> RpcEndpoint:
        return self._endpoint

    async def request(
        self,
        method: str,
        params: Optional[list[Any]] = None,
        timeout: Optional[TimeString] = None,
    ) -> Any:
        """
        Raises:
            RpcError: If the node returns an error object
            FetchError: On transport errors
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        data = await self._fetch.fetch_json(
            self._endpoint.url,
            method="POST",
            json=payload,
            timeout=timeout,
            source_name=f"rpc:{self._endpoint.chain_id}",
        )
        if not isinstance(data, dict):
            raise SourceError(f"Unexpected JSON-RPC response: {data!r}"[:300], chain_id=self._endpoint.chain_id)

        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RpcError(f"{method} failed: {message}", code=code, chain_id=self._endpoint.chain_id)
        return data.get("result")
