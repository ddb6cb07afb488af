"""
Aggregation Engine - Configuration.

============================================================
CONFIGURABLE DEFAULTS
============================================================

- Default request timeout
- Aggregation method per domain (gas, prices)
- Cache freshness policy
- Provider API keys
- Log level

Configuration can be loaded from:
- Default values
- Environment variables (a .env file is honoured)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from source_core.aggregation import AggregationMethod
from source_core.cache import CacheConfig
from source_core.chains import Chain
from source_core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Environment variable -> chain of the explorer it unlocks (Ethereum uses ETHERSCAN_API_KEY)
EXPLORER_KEY_ENV = {
    "POLYGONSCAN_API_KEY": Chain.POLYGON,
    "BSCSCAN_API_KEY": Chain.BNB_CHAIN,
    "FTMSCAN_API_KEY": Chain.FANTOM,
}


# =============================================================
# CACHE SETTINGS
# =============================================================


@dataclass
class CacheSettings:
    """Cache policy shared by the cached sources."""
    use_cached_value: str = "if-fresh"
    use_cached_value_if_calculation_failed: str = "never"
    freshness: str = "1m"
    max_size: Optional[int] = 10000

    def to_cache_config(self) -> CacheConfig:
        return CacheConfig(
            use_cached_value=self.use_cached_value,
            use_cached_value_if_calculation_failed=self.use_cached_value_if_calculation_failed,
            freshness=self.freshness,
            max_size=self.max_size,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "use_cached_value": self.use_cached_value,
            "use_cached_value_if_calculation_failed": self.use_cached_value_if_calculation_failed,
            "freshness": self.freshness,
            "max_size": self.max_size,
        }


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class AggregatorSettings:
    """
    Main configuration for the aggregation engine.

    Combines all sub-configurations.
    """
    default_timeout: Optional[str] = "10s"
    gas_aggregation_method: AggregationMethod = AggregationMethod.MEDIAN
    price_aggregation_method: AggregationMethod = AggregationMethod.MEDIAN
    cache: CacheSettings = field(default_factory=CacheSettings)

    # Provider credentials. etherscan_api_key is the Ethereum key; the other
    # explorers are keyed by chain id in explorer_api_keys
    etherscan_api_key: Optional[str] = None
    explorer_api_keys: Dict[int, str] = field(default_factory=dict)
    alchemy_api_key: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate settings."""
        self.gas_aggregation_method = AggregationMethod.of(self.gas_aggregation_method)
        self.price_aggregation_method = AggregationMethod.of(self.price_aggregation_method)
        self.explorer_api_keys = {int(chain_id): key for chain_id, key in self.explorer_api_keys.items() if key}
        # Fails early on a bad cache policy
        self.cache.to_cache_config()

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "AggregatorSettings":
        """
        Load configuration from environment variables.

        Environment variables:
        - AGG_DEFAULT_TIMEOUT ("none" disables the default deadline)
        - AGG_GAS_AGGREGATION_METHOD
        - AGG_PRICE_AGGREGATION_METHOD
        - AGG_CACHE_USE_CACHED_VALUE
        - AGG_CACHE_IF_CALCULATION_FAILED
        - AGG_CACHE_FRESHNESS
        - AGG_CACHE_MAX_SIZE
        - AGG_LOG_LEVEL
        - ETHERSCAN_API_KEY, POLYGONSCAN_API_KEY, BSCSCAN_API_KEY, FTMSCAN_API_KEY
        - ALCHEMY_API_KEY
        """
        load_dotenv(dotenv_path)

        cache = CacheSettings()
        if os.getenv("AGG_CACHE_USE_CACHED_VALUE"):
            cache.use_cached_value = os.getenv("AGG_CACHE_USE_CACHED_VALUE")
        if os.getenv("AGG_CACHE_IF_CALCULATION_FAILED"):
            cache.use_cached_value_if_calculation_failed = os.getenv("AGG_CACHE_IF_CALCULATION_FAILED")
        if os.getenv("AGG_CACHE_FRESHNESS"):
            cache.freshness = os.getenv("AGG_CACHE_FRESHNESS")
        if os.getenv("AGG_CACHE_MAX_SIZE"):
            try:
                cache.max_size = int(os.getenv("AGG_CACHE_MAX_SIZE"))
            except ValueError as e:
                raise ConfigurationError(f"Invalid AGG_CACHE_MAX_SIZE: {e}", original_error=e)

        default_timeout = os.getenv("AGG_DEFAULT_TIMEOUT", "10s")
        if default_timeout.lower() == "none":
            default_timeout = None

        try:
            return cls(
                default_timeout=default_timeout,
                gas_aggregation_method=os.getenv("AGG_GAS_AGGREGATION_METHOD", "median"),
                price_aggregation_method=os.getenv("AGG_PRICE_AGGREGATION_METHOD", "median"),
                cache=cache,
                etherscan_api_key=os.getenv("ETHERSCAN_API_KEY") or None,
                explorer_api_keys={
                    int(chain): os.getenv(env)
                    for env, chain in EXPLORER_KEY_ENV.items()
                    if os.getenv(env)
                },
                alchemy_api_key=os.getenv("ALCHEMY_API_KEY") or None,
                log_level=os.getenv("AGG_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}", original_error=e)

    @classmethod
    def from_yaml(cls, path: Path) -> "AggregatorSettings":
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If the file is unreadable or holds invalid values
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}: {e}", original_error=e)

        cache = CacheSettings()
        if "cache" in data:
            c = data["cache"]
            cache = CacheSettings(
                use_cached_value=c.get("use_cached_value", cache.use_cached_value),
                use_cached_value_if_calculation_failed=c.get(
                    "use_cached_value_if_calculation_failed",
                    cache.use_cached_value_if_calculation_failed,
                ),
                freshness=c.get("freshness", cache.freshness),
                max_size=c.get("max_size", cache.max_size),
            )

        try:
            return cls(
                default_timeout=data.get("default_timeout", "10s"),
                gas_aggregation_method=data.get("gas_aggregation_method", "median"),
                price_aggregation_method=data.get("price_aggregation_method", "median"),
                cache=cache,
                etherscan_api_key=data.get("etherscan_api_key"),
                explorer_api_keys=data.get("explorer_api_keys") or {},
                alchemy_api_key=data.get("alchemy_api_key"),
                log_level=data.get("log_level", "INFO"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}", original_error=e)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (credentials are masked)."""
        return {
            "default_timeout": self.default_timeout,
            "gas_aggregation_method": self.gas_aggregation_method.value,
            "price_aggregation_method": self.price_aggregation_method.value,
            "cache": self.cache.to_dict(),
            "etherscan_api_key": "***" if self.etherscan_api_key else None,
            "explorer_api_keys": {chain_id: "***" for chain_id in self.explorer_api_keys},
            "alchemy_api_key": "***" if self.alchemy_api_key else None,
            "log_level": self.log_level,
        }


# =============================================================
# LOGGING
# =============================================================


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[AggregatorSettings] = None


def get_config() -> AggregatorSettings:
    """Get the global engine configuration."""
    global _default_config
    if _default_config is None:
        _default_config = AggregatorSettings.from_env()
    return _default_config


def set_config(config: Optional[AggregatorSettings]) -> None:
    """Set (or reset with None) the global engine configuration."""
    global _default_config
    _default_config = config
