"""
Token Metadata Models.
"""

from enum import Enum
from typing import Any

from source_core.chains import ChainId


TokenAddress = str


class MetadataField(Enum):
    """Properties a metadata source may fill in for a token."""
    DECIMALS = "decimals"
    SYMBOL = "symbol"
    NAME = "name"


# Field -> value (int for decimals, str otherwise)
TokenMetadata = dict[MetadataField, Any]

# Chain -> token -> metadata
MetadataByChain = dict[ChainId, dict[TokenAddress, TokenMetadata]]


def metadata_to_dict(metadata: TokenMetadata) -> dict[str, Any]:
    """Convert to dictionary for serialization."""
    return {field.value: value for field, value in metadata.items()}
