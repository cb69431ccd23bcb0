"""
Ledger Models - Values read from the escrow contract.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


class AbiType(str, Enum):
    """Return types the reader knows how to decode from a single word."""
    UINT256 = "uint256"
    ADDRESS = "address"
    BOOL = "bool"


# Escrow contract view functions read by this service, with return type.
CONTRACT_FIELDS: dict[str, AbiType] = {
    "owner": AbiType.ADDRESS,
    "platformFeeBps": AbiType.UINT256,
    "paused": AbiType.BOOL,
}


def descale(raw_amount: int, token_decimals: int) -> Decimal:
    """Convert a raw integer token amount to token units."""
    if token_decimals < 0:
        raise ValueError(f"token_decimals must be >= 0, got {token_decimals}")
    # Built from text so no context rounding applies to long amounts.
    return Decimal(f"{int(raw_amount)}E-{token_decimals}")


@dataclass(frozen=True)
class LedgerOrderSnapshot:
    """
    Authoritative remaining amount of an escrow order.

    remaining_amount is the raw integer held by the contract, not yet
    descaled by the token's decimals.
    """
    on_chain_id: int
    chain_id: int
    remaining_amount: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def descaled(self, token_decimals: int) -> Decimal:
        return descale(self.remaining_amount, token_decimals)

