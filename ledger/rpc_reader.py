"""
JSON-RPC Ledger Reader - Reads the escrow contract through eth_call.

============================================================
PURPOSE
============================================================
Talks to an EVM JSON-RPC endpoint with aiohttp and decodes the
escrow contract's view functions:

- orders(uint256)   -> tuple; word 4 is the remaining amount
- owner()           -> address
- platformFeeBps()  -> uint256
- paused()          -> bool

Every transport, HTTP, RPC or decoding failure surfaces as
LedgerUnavailable.

============================================================
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp
from eth_utils import keccak

from core.constants import LEDGER_REMAINING_AMOUNT_INDEX
from core.exceptions import LedgerUnavailable
from ledger.base import LedgerReader
from ledger.models import CONTRACT_FIELDS, AbiType


logger = logging.getLogger(__name__)

WORD_HEX_LENGTH = 64


def function_selector(signature: str) -> str:
    """4-byte selector for a Solidity function signature, 0x-prefixed."""
    return "0x" + keccak(text=signature)[:4].hex()


def encode_uint256(value: int) -> str:
    if value < 0:
        raise ValueError(f"uint256 cannot be negative: {value}")
    return format(value, "064x")


def split_words(result_hex: str) -> list[str]:
    """Split an ABI-encoded return value into 32-byte hex words."""
    data = result_hex[2:] if result_hex.startswith("0x") else result_hex
    if len(data) % WORD_HEX_LENGTH != 0:
        raise ValueError(f"Return data is not word aligned ({len(data)} hex chars)")
    return [data[i:i + WORD_HEX_LENGTH] for i in range(0, len(data), WORD_HEX_LENGTH)]


def decode_word(word: str, abi_type: AbiType) -> Any:
    if abi_type is AbiType.ADDRESS:
        return "0x" + word[-40:]
    if abi_type is AbiType.BOOL:
        return int(word, 16) != 0
    return int(word, 16)


class JsonRpcLedgerReader(LedgerReader):
    """
    Ledger reader backed by an EVM JSON-RPC endpoint.

    The aiohttp session is created lazily and owned by the reader
    unless one is injected.
    """

    ORDERS_SIGNATURE = "orders(uint256)"

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        contract_address: str,
        timeout: float = 20.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._chain_id = chain_id
        self._rpc_url = rpc_url
        self._contract_address = contract_address
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def contract_address(self) -> str:
        return self._contract_address

    # ---------------------------------------------------------
    # HTTP / JSON-RPC
    # ---------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            headers = {"Content-Type": "application/json"}
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
            )
            self._owns_session = True
        return self._session

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make a JSON-RPC call and return its result field."""
        session = await self._get_session()

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        try:
            async with session.post(self._rpc_url, json=payload) as response:
                if response.status != 200:
                    raise LedgerUnavailable(
                        f"RPC HTTP error: {response.status}",
                        chain_id=self._chain_id,
                        operation=method,
                    )

                data = await response.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise LedgerUnavailable(
                f"RPC request failed: {e}",
                chain_id=self._chain_id,
                operation=method,
                cause=e,
            ) from e

        if not isinstance(data, dict):
            raise LedgerUnavailable(
                "Malformed RPC response",
                chain_id=self._chain_id,
                operation=method,
            )

        if data.get("error"):
            error = data["error"]
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            raise LedgerUnavailable(
                f"RPC error: {message}",
                chain_id=self._chain_id,
                operation=method,
            )

        return data.get("result")

    async def _eth_call(self, data: str, operation: str) -> list[str]:
        result = await self._rpc_call(
            "eth_call",
            [{"to": self._contract_address, "data": data}, "latest"],
        )
        if not isinstance(result, str) or result in ("0x", ""):
            raise LedgerUnavailable(
                f"Empty return data from {operation}",
                chain_id=self._chain_id,
                operation=operation,
            )
        try:
            return split_words(result)
        except ValueError as e:
            raise LedgerUnavailable(
                f"Undecodable return data from {operation}: {e}",
                chain_id=self._chain_id,
                operation=operation,
                cause=e,
            ) from e

    # ---------------------------------------------------------
    # CONTRACT READS
    # ---------------------------------------------------------

    async def read_order_remaining(self, on_chain_id: int) -> int:
        data = function_selector(self.ORDERS_SIGNATURE) + encode_uint256(on_chain_id)
        words = await self._eth_call(data, self.ORDERS_SIGNATURE)

        if len(words) <= LEDGER_REMAINING_AMOUNT_INDEX:
            raise LedgerUnavailable(
                f"orders({on_chain_id}) returned {len(words)} words",
                chain_id=self._chain_id,
                operation=self.ORDERS_SIGNATURE,
            )

        remaining = int(words[LEDGER_REMAINING_AMOUNT_INDEX], 16)
        logger.debug(
            f"[chain={self._chain_id}] orders({on_chain_id}) remaining={remaining}"
        )
        return remaining

    async def read_contract_field(self, name: str) -> Any:
        abi_type = CONTRACT_FIELDS.get(name, AbiType.UINT256)
        signature = f"{name}()"
        words = await self._eth_call(function_selector(signature), signature)
        return decode_word(words[0], abi_type)

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
