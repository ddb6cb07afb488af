"""
Balance Models.

Balances are integers in the token's smallest unit.
"""

from enum import Enum
from typing import Any, Optional

from source_core.chains import ChainId


Address = str
TokenAddress = str

# Placeholder address for the chain's native token
NATIVE_TOKEN: TokenAddress = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


class BalanceQuery(Enum):
    """Kinds of balance query a source may answer on a chain."""
    TOKENS_HELD_BY_ACCOUNT = "tokens_held_by_account"
    BALANCES_FOR_TOKENS = "balances_for_tokens"


# Chain -> account -> token -> balance
BalancesByChain = dict[ChainId, dict[Address, dict[TokenAddress, int]]]

# Chain -> queries answered on that chain
BalanceQuerySupport = dict[ChainId, frozenset]


def is_same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def is_native_token(token: TokenAddress) -> bool:
    return is_same_address(token, NATIVE_TOKEN)


def to_balance(value: Any) -> Optional[int]:
    """Parse a balance (int, decimal or 0x-hex string). None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and value:
        try:
            parsed = int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            return None
        return parsed if parsed >= 0 else None
    return None
