"""
Chain identifiers.

Chain ids are plain integers everywhere in the engine; this table only gives
names to the networks the bundled providers know about.
"""

from enum import IntEnum
from typing import Optional


ChainId = int


class Chain(IntEnum):
    """Well-known EVM networks."""
    ETHEREUM = 1
    OPTIMISM = 10
    BNB_CHAIN = 56
    GNOSIS = 100
    POLYGON = 137
    FANTOM = 250
    BASE = 8453
    ARBITRUM = 42161
    AVALANCHE = 43114

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Chain.ETHEREUM: "Ethereum",
    Chain.OPTIMISM: "Optimism",
    Chain.BNB_CHAIN: "BNB Chain",
    Chain.GNOSIS: "Gnosis",
    Chain.POLYGON: "Polygon",
    Chain.FANTOM: "Fantom",
    Chain.BASE: "Base",
    Chain.ARBITRUM: "Arbitrum",
    Chain.AVALANCHE: "Avalanche",
}


def chain_name(chain_id: ChainId) -> str:
    """Human readable name for a chain id, falling back to the raw id."""
    try:
        return Chain(chain_id).display_name
    except ValueError:
        return f"Chain with id {chain_id}"


def find_chain(chain_id: ChainId) -> Optional[Chain]:
    try:
        return Chain(chain_id)
    except ValueError:
        return None
