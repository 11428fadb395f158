"""
Wallet providers.

The submitter only ever talks to :class:`WalletProvider`; the connected
address and active chain belong to the wallet, we read them and request
changes but never set them ourselves.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.execution.models import (
    TransactionReceipt,
    TransactionRequest,
    TransactionRevertedError,
)


logger = logging.getLogger(__name__)


class WalletRPCError(Exception):
    """JSON-RPC error returned by the wallet."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class WalletProvider(ABC):
    """Injected wallet interface"""

    name: str

    @abstractmethod
    async def get_address(self) -> Optional[str]:
        """Connected account, or None when disconnected"""
        pass

    @abstractmethod
    async def get_chain_id(self) -> Optional[int]:
        """Active chain of the connected account"""
        pass

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to move to ``chain_id``; may be refused by the user"""
        pass

    @abstractmethod
    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign and broadcast, returning the transaction hash"""
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """Block until the transaction is mined; raises if it reverted"""
        pass


class JsonRpcWalletProvider(WalletProvider):
    """EIP-1193 style wallet reached over HTTP JSON-RPC.

    Works against any endpoint that exposes the account methods, e.g. a
    local node with an unlocked account or a wallet bridge.
    """

    name = "json_rpc"

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        account: Optional[str] = None,
        poll_interval_seconds: Optional[float] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url or settings.wallet_rpc_url
        self._account = account
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.receipt_poll_interval_seconds
        )
        self._client = httpx.AsyncClient(
            timeout=timeout_s or settings.request_timeout_seconds,
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        response = await self._client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        result = response.json()

        if "error" in result and result["error"]:
            error = result["error"]
            raise WalletRPCError(
                error.get("message", f"RPC error: {error}"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return result.get("result")

    async def get_address(self) -> Optional[str]:
        if self._account:
            return self._account
        accounts = await self._rpc_call("eth_accounts", [])
        return accounts[0] if accounts else None

    async def get_chain_id(self) -> Optional[int]:
        chain_hex = await self._rpc_call("eth_chainId", [])
        return int(chain_hex, 16) if chain_hex else None

    async def switch_chain(self, chain_id: int) -> None:
        await self._rpc_call("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])
        logger.info("Wallet switched to chain %s", chain_id)

    async def send_transaction(self, request: TransactionRequest) -> str:
        tx_hash = await self._rpc_call("eth_sendTransaction", [request.to_rpc()])
        logger.info("Transaction submitted: %s", tx_hash)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        while True:
            try:
                receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
            except Exception as exc:
                # node hiccups and rate limits; the caller bounds the wait
                logger.warning("Error checking transaction status: %s", exc)
                receipt = None

            if receipt:
                parsed = _parse_receipt(tx_hash, receipt)
                if not parsed.is_success:
                    raise TransactionRevertedError("Transaction reverted", tx_hash=tx_hash)
                logger.info("Transaction confirmed: %s (block %s)", tx_hash, parsed.block_number)
                return parsed

            await asyncio.sleep(self.poll_interval_seconds)

    async def close(self) -> None:
        await self._client.aclose()


def _parse_receipt(tx_hash: str, receipt: Dict[str, Any]) -> TransactionReceipt:
    gas_used = receipt.get("gasUsed")
    return TransactionReceipt(
        tx_hash=tx_hash,
        block_number=int(receipt["blockNumber"], 16),
        block_hash=receipt.get("blockHash"),
        # 0x1 = success, 0x0 = revert
        status=int(receipt.get("status", "0x1"), 16),
        gas_used=int(gas_used, 16) if gas_used else None,
    )
