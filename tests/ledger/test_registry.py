"""
Tests for LedgerRegistry.
"""

import pytest

from core.config import LedgerConfig
from core.exceptions import ChainNotSupported, LedgerUnavailable
from ledger.registry import LedgerRegistry
from ledger.rpc_reader import JsonRpcLedgerReader
from tests.fakes import FakeLedgerReader


class TestLedgerRegistry:
    """Tests for LedgerRegistry."""

    def test_get_registered_reader(self):
        registry = LedgerRegistry()
        reader = FakeLedgerReader(chain_id=8453)
        registry.register(reader)

        assert registry.get(8453) is reader
        assert registry.supports(8453)
        assert registry.chain_ids == [8453]

    def test_unknown_chain_raises(self):
        registry = LedgerRegistry()
        with pytest.raises(ChainNotSupported) as exc_info:
            registry.get(1)

        assert isinstance(exc_info.value, LedgerUnavailable)
        assert "Unsupported chain ID: 1" in exc_info.value.message

    def test_from_config_skips_incomplete_chains(self):
        config = LedgerConfig(
            rpc_urls={84532: "https://sepolia.base.org", 1: "https://eth"},
            contract_addresses={84532: "0x" + "11" * 20},
        )
        registry = LedgerRegistry.from_config(config)

        assert registry.chain_ids == [84532]
        reader = registry.get(84532)
        assert isinstance(reader, JsonRpcLedgerReader)
        assert reader.contract_address == "0x" + "11" * 20

    @pytest.mark.asyncio
    async def test_close_closes_every_reader(self):
        registry = LedgerRegistry()
        readers = [FakeLedgerReader(chain_id=1), FakeLedgerReader(chain_id=2)]
        for reader in readers:
            registry.register(reader)

        await registry.close()

        assert all(r.closed for r in readers)
