"""
Fetch Service - thin HTTP transport shared by remote sources.

One aiohttp session per service, created lazily. Errors are normalized to
FetchError / RateLimitError so aggregators can report them per source.
"""

import logging
import time
from typing import Any, Optional

import aiohttp

from source_core.exceptions import FetchError, RateLimitError
from source_core.timeouts import TimeString, to_seconds


logger = logging.getLogger(__name__)


class FetchService:
    """
    HTTP client for source integrations.

    Usage:
        async with FetchService() as fetch:
            data = await fetch.fetch_json(url, params={"module": "gastracker"}, timeout="5s")
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "chain-source-aggregator/1.0",
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._default_timeout = default_timeout
        self._user_agent = user_agent
        self._request_count = 0
        self._error_count = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._default_timeout),
                headers={
                    "Accept": "application/json",
                    "User-Agent": self._user_agent,
                },
            )
            self._owns_session = True
        return self._session

    async def fetch_json(
        self,
        url: str,
        method: str = "GET",
        params: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[TimeString] = None,
        source_name: Optional[str] = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Args:
            url: Target URL
            method: HTTP method
            params: Query string parameters
            json: JSON body
            headers: Extra headers
            timeout: Total request timeout ("5s", ...); session default if None
            source_name: Reported in errors

        Raises:
            RateLimitError: On HTTP 429
            FetchError: On any other HTTP error, connection error or bad JSON
        """
        session = await self._get_session()
        seconds = to_seconds(timeout)
        request_timeout = aiohttp.ClientTimeout(total=seconds) if seconds is not None else None

        self._request_count += 1
        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=request_timeout,
            ) as response:
                latency_ms = (time.time() - start_time) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=source_name,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                        request_url=url,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        source_name=source_name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                data = await response.json(content_type=None)
                logger.debug(f"[{source_name or 'fetch'}] {method} {url} completed in {latency_ms:.1f}ms")
                return data

        except FetchError:
            self._error_count += 1
            raise
        except (aiohttp.ClientError, ValueError) as e:
            self._error_count += 1
            raise FetchError(
                message=f"Request failed: {e}",
                source_name=source_name,
                request_url=url,
                original_error=e,
            )

    def stats(self) -> dict[str, int]:
        return {
            "requests": self._request_count,
            "errors": self._error_count,
        }

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "FetchService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
