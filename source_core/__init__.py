"""
Source Core - shared engine for multi-source chain data aggregation.

Provides the building blocks every domain package (gas, prices, balances,
quotes, metadata, providers) is assembled from:

- Support records and the requirements validator
- Timeout envelope with orphan tracking
- Concurrent deduplicating cache
- min / max / median aggregation methods
- Exception hierarchy
- Configuration and logging setup
- aiohttp fetch service

Quick Start:
    from source_core import CacheConfig, ConcurrentLRUCache, with_timeout

    cache = ConcurrentLRUCache(
        calculate=fetch_many,
        config=CacheConfig(use_cached_value="30s"),
    )
    values = await cache.get_or_calculate(["a", "b"], timeout="5s")
"""

from source_core.aggregation import AggregationMethod
from source_core.cache import CacheConfig, CacheEntry, ConcurrentLRUCache
from source_core.chains import Chain, ChainId, chain_name
from source_core.config import (
    AggregatorSettings,
    CacheSettings,
    get_config,
    set_config,
    setup_logging,
)
from source_core.exceptions import (
    AllSourcesFailedError,
    ConfigurationError,
    FetchError,
    NoSourcesError,
    OperationNotSupportedError,
    OperationTimeoutError,
    RateLimitError,
    SourceAggregationError,
    SourceError,
    UnmetRequirementsError,
    UnsupportedChainError,
)
from source_core.fetch import FetchService
from source_core.models import (
    FieldRequirement,
    FieldsRequirements,
    SupportByChain,
    SupportLevel,
    SupportRecord,
)
from source_core.requirements import (
    combine_capabilities,
    combine_support,
    meets_requirements,
    supported_chains,
    validate_requirements,
)
from source_core.timeouts import (
    TimeString,
    orphaned_operations,
    reduce_timeout,
    to_milliseconds,
    with_timeout,
)


__version__ = "1.0.0"

__all__ = [
    # Aggregation
    "AggregationMethod",

    # Cache
    "CacheConfig",
    "CacheEntry",
    "ConcurrentLRUCache",

    # Chains
    "Chain",
    "ChainId",
    "chain_name",

    # Config
    "AggregatorSettings",
    "CacheSettings",
    "get_config",
    "set_config",
    "setup_logging",

    # Exceptions
    "SourceAggregationError",
    "ConfigurationError",
    "NoSourcesError",
    "UnsupportedChainError",
    "UnmetRequirementsError",
    "OperationTimeoutError",
    "OperationNotSupportedError",
    "SourceError",
    "FetchError",
    "RateLimitError",
    "AllSourcesFailedError",

    # Transport
    "FetchService",

    # Support / requirements
    "FieldRequirement",
    "FieldsRequirements",
    "SupportByChain",
    "SupportLevel",
    "SupportRecord",
    "combine_capabilities",
    "combine_support",
    "meets_requirements",
    "supported_chains",
    "validate_requirements",

    # Timeouts
    "TimeString",
    "orphaned_operations",
    "reduce_timeout",
    "to_milliseconds",
    "with_timeout",
]
