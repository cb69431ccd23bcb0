"""
Base Ledger Reader - Abstract interface to the on-chain escrow contract.

All readers MUST:
- Be read-only
- Raise LedgerUnavailable on any RPC or contract-call failure
- Return raw integer amounts (descaling is the caller's job)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from ledger.models import LedgerOrderSnapshot


logger = logging.getLogger(__name__)


class LedgerReader(ABC):
    """
    Abstract base class for escrow ledger readers.

    Each reader must:
    1. Implement chain_id - the chain it reads from
    2. Implement read_order_remaining() - raw remaining amount of an order
    3. Implement read_contract_field() - a single contract view field
    4. Implement close() - release network resources

    read_order() wraps read_order_remaining() in a LedgerOrderSnapshot;
    the reconciliation engine reads through it.
    """

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """Chain this reader is bound to."""
        pass

    @abstractmethod
    async def read_order_remaining(self, on_chain_id: int) -> int:
        """
        Read the raw remaining amount of an escrow order.

        Args:
            on_chain_id: Order identifier in the contract

        Returns:
            Raw integer amount

        Raises:
            LedgerUnavailable: If the RPC or contract call fails
        """
        pass

    @abstractmethod
    async def read_contract_field(self, name: str) -> Any:
        """
        Read a single view field of the escrow contract.

        Args:
            name: Field name (owner, platformFeeBps, paused)

        Returns:
            Decoded value

        Raises:
            LedgerUnavailable: If the RPC or contract call fails
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def read_order(self, on_chain_id: int) -> LedgerOrderSnapshot:
        """Read an order and wrap it in a timestamped snapshot."""
        remaining = await self.read_order_remaining(on_chain_id)
        return LedgerOrderSnapshot(
            on_chain_id=on_chain_id,
            chain_id=self.chain_id,
            remaining_amount=remaining,
            fetched_at=datetime.now(timezone.utc),
        )
