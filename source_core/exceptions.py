"""
Source Aggregation Exceptions - Custom exception hierarchy for the engine.

Pre-flight errors (unsupported chain, unmet requirements) are raised before
any network call. Runtime errors (timeouts, source failures) are collected
by aggregators and only surface when no source survives.
"""

from datetime import datetime
from typing import Any, Optional


class SourceAggregationError(Exception):
    """Base exception for all aggregation engine errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        chain_id: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.chain_id = chain_id
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "chain_id": self.chain_id,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class ConfigurationError(SourceAggregationError):
    """Invalid construction or configuration of a source."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data


class NoSourcesError(ConfigurationError):
    """A combinator or aggregator was built without any source."""

    def __init__(self, message: str = "No sources were specified") -> None:
        super().__init__(message)


class UnsupportedChainError(SourceAggregationError):
    """No source declares support for the requested chain."""

    def __init__(
        self,
        chain_id: int,
        message: Optional[str] = None,
        source_name: Optional[str] = None,
        supported_chains: Optional[list[int]] = None,
    ) -> None:
        super().__init__(
            message or f"Chain with id {chain_id} not supported",
            source_name=source_name,
            chain_id=chain_id,
        )
        self.supported_chains = supported_chains or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["supported_chains"] = self.supported_chains
        return data


class UnmetRequirementsError(SourceAggregationError):
    """Declared support (or a received response) cannot satisfy the requirements."""

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        fields: Optional[list[str]] = None,
        source_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, source_name=source_name, chain_id=chain_id)
        self.fields = fields or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class OperationTimeoutError(SourceAggregationError):
    """
    An operation exceeded its deadline.

    The underlying work is not cancelled and may still be running.
    """

    def __init__(
        self,
        timeout: str,
        description: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> None:
        what = description or "Operation"
        super().__init__(f"{what} timed out after {timeout}", source_name=source_name)
        self.timeout = timeout
        self.description = description


class OperationNotSupportedError(SourceAggregationError):
    """The source does not support the requested query on a chain."""


class SourceError(SourceAggregationError):
    """A single source's own failure."""


class FetchError(SourceError):
    """Error during an HTTP call to a remote source."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data

    def is_rate_limited(self) -> bool:
        """Check if error is due to rate limiting."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return self.status_code is not None and 400 <= self.status_code < 500


class RateLimitError(FetchError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        request_url: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            source_name,
            status_code=429,
            request_url=request_url,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class AllSourcesFailedError(SourceAggregationError):
    """
    Every dispatched source rejected or returned an unacceptable response.

    The individual failures are kept in ``failures`` keyed by source name.
    """

    def __init__(
        self,
        message: str,
        failures: Optional[dict[str, Exception]] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        super().__init__(message, chain_id=chain_id)
        self.failures = failures or {}

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["failures"] = {name: str(error) for name, error in self.failures.items()}
        return data

    def __str__(self) -> str:
        base = super().__str__()
        if not self.failures:
            return base
        details = "; ".join(f"{name}: {error}" for name, error in self.failures.items())
        return f"{base} ({details})"
