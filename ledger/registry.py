"""
Ledger Registry - Resolves the ledger reader for a chain.

Orders carry a chain id; reconciliation asks the registry for the
reader bound to that chain. Unknown chains raise ChainNotSupported,
which the reconciliation engine records as a failed SyncResult.
"""

import logging
from typing import Optional

import aiohttp

from core.config import LedgerConfig
from core.exceptions import ChainNotSupported
from ledger.base import LedgerReader
from ledger.rpc_reader import JsonRpcLedgerReader


logger = logging.getLogger(__name__)


class LedgerRegistry:
    """
    Registry of ledger readers keyed by chain id.

    Usage:
        registry = LedgerRegistry()
        registry.register(JsonRpcLedgerReader(84532, rpc_url, address))

        reader = registry.get(84532)
        remaining = await reader.read_order_remaining(7)
    """

    def __init__(self) -> None:
        self._readers: dict[int, LedgerReader] = {}

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "LedgerRegistry":
        """Build one JSON-RPC reader per chain that has an endpoint and a contract."""
        registry = cls()
        for chain_id in config.chains():
            registry.register(
                JsonRpcLedgerReader(
                    chain_id=chain_id,
                    rpc_url=config.rpc_urls[chain_id],
                    contract_address=config.contract_addresses[chain_id],
                    timeout=config.timeout_seconds,
                    session=session,
                )
            )

        skipped = set(config.rpc_urls) ^ set(config.contract_addresses)
        for chain_id in sorted(skipped):
            logger.warning(
                f"Chain {chain_id} needs both an RPC URL and a contract address, skipped"
            )
        return registry

    def register(self, reader: LedgerReader) -> None:
        if reader.chain_id in self._readers:
            logger.warning(f"Replacing ledger reader for chain {reader.chain_id}")
        self._readers[reader.chain_id] = reader
        logger.info(f"Registered ledger reader for chain {reader.chain_id}")

    def get(self, chain_id: int) -> LedgerReader:
        """
        Get the reader for a chain.

        Raises:
            ChainNotSupported: If no reader is registered
        """
        reader = self._readers.get(chain_id)
        if reader is None:
            raise ChainNotSupported(chain_id)
        return reader

    def supports(self, chain_id: int) -> bool:
        return chain_id in self._readers

    @property
    def chain_ids(self) -> list[int]:
        return sorted(self._readers)

    async def close(self) -> None:
        """Close every registered reader."""
        for reader in self._readers.values():
            await reader.close()
