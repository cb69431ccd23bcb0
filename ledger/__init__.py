"""
Ledger Package - Read-only access to the on-chain escrow contract.

The ledger is the source of truth for each order's remaining amount.

Quick Start:
    from ledger import JsonRpcLedgerReader, LedgerRegistry

    registry = LedgerRegistry()
    registry.register(JsonRpcLedgerReader(84532, rpc_url, contract_address))

    reader = registry.get(84532)
    raw = await reader.read_order_remaining(on_chain_id=7)
    owner = await reader.read_contract_field("owner")

Failures always surface as core.exceptions.LedgerUnavailable.
"""

from ledger.base import LedgerReader
from ledger.models import (
    CONTRACT_FIELDS,
    AbiType,
    LedgerOrderSnapshot,
    descale,
)
from ledger.registry import LedgerRegistry
from ledger.rpc_reader import JsonRpcLedgerReader, function_selector


__all__ = [
    # Interface
    "LedgerReader",

    # Implementations
    "JsonRpcLedgerReader",
    "LedgerRegistry",

    # Models
    "AbiType",
    "CONTRACT_FIELDS",
    "LedgerOrderSnapshot",
    "descale",

    # Helpers
    "function_selector",
]
