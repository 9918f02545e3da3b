"""Chain client interface and a web3-backed implementation with signing and retries."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from eth_account import Account
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from savings_agent.chain.contracts import decode_result, encode_call
from savings_agent.core.config import Settings, get_settings
from savings_agent.core.errors import ChainCallError, ConfigurationError
from savings_agent.core.logging import get_logger


LOG = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (asyncio.TimeoutError, ConnectionError, OSError)


@dataclass(frozen=True, slots=True)
class Receipt:
    """Mined transaction receipt fields the engine relies on."""

    tx_hash: str
    gas_used: int
    effective_gas_price: int
    status: int = 1


class ChainClient(ABC):
    """Signing identity plus read/write access to contract state."""

    @property
    @abstractmethod
    def address(self) -> str: ...

    @abstractmethod
    async def read_call(
        self,
        contract: str,
        signature: str,
        args: Sequence[Any] = (),
        *,
        returns: Sequence[str] = ("uint256",),
    ) -> Any:
        """Execute a view call and return the decoded result."""

    @abstractmethod
    async def send_transaction(self, contract: str, data: bytes) -> str:
        """Sign and submit raw calldata to ``contract``; return the transaction hash."""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        """Block until ``tx_hash`` is mined; a reverted transaction still returns its receipt."""

    @abstractmethod
    async def native_balance(self, address: Optional[str] = None) -> int:
        """Return the native-asset balance in wei."""


class Web3ChainClient(ChainClient):
    """JSON-RPC client signing locally with the agent's private key."""

    def __init__(self, settings: Optional[Settings] = None, *, web3: Optional[AsyncWeb3] = None) -> None:
        self._settings = settings or get_settings()
        if self._settings.agent_private_key is None:
            raise ConfigurationError("AGENT_PRIVATE_KEY is required to sign transactions")
        self._account = Account.from_key(self._settings.agent_private_key.get_secret_value())
        self._w3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(
                self._settings.rpc_url,
                request_kwargs={"timeout": self._settings.http_timeout_seconds},
            )
        )
        self._chain_id: Optional[int] = None
        self._send_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._account.address

    async def read_call(
        self,
        contract: str,
        signature: str,
        args: Sequence[Any] = (),
        *,
        returns: Sequence[str] = ("uint256",),
    ) -> Any:
        calldata = encode_call(signature, args)

        async def do_call() -> bytes:
            return bytes(
                await self._w3.eth.call({"to": Web3.to_checksum_address(contract), "data": Web3.to_hex(calldata)})
            )

        raw = await self._with_retries(do_call, operation=signature, contract=contract)
        try:
            return decode_result(returns, raw)
        except Exception as exc:
            raise ChainCallError(f"Could not decode {signature} result from {contract}: {exc}") from exc

    async def send_transaction(self, contract: str, data: bytes) -> str:
        # Nonce assignment must not interleave for a single signing identity.
        async with self._send_lock:
            try:
                chain_id = await self._get_chain_id()
                nonce = await self._w3.eth.get_transaction_count(self.address, "pending")
                tx: dict[str, Any] = {
                    "from": self.address,
                    "to": Web3.to_checksum_address(contract),
                    "data": Web3.to_hex(data),
                    "value": 0,
                    "nonce": nonce,
                    "chainId": chain_id,
                    "gasPrice": await self._w3.eth.gas_price,
                }
                tx["gas"] = await self._w3.eth.estimate_gas(tx)
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            except ChainCallError:
                raise
            except Exception as exc:
                LOG.warning("Transaction submission failed", contract=contract, error=str(exc))
                raise ChainCallError(f"Transaction to {contract} failed: {exc}") from exc
        hex_hash = Web3.to_hex(tx_hash)
        LOG.debug("Transaction submitted", contract=contract, tx_hash=hex_hash, nonce=nonce)
        return hex_hash

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        try:
            raw = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._settings.receipt_timeout_seconds
            )
        except Exception as exc:
            raise ChainCallError(f"Receipt wait failed for {tx_hash}: {exc}", tx_hash=tx_hash) from exc
        receipt = Receipt(
            tx_hash=tx_hash,
            gas_used=int(raw["gasUsed"]),
            effective_gas_price=int(raw.get("effectiveGasPrice", 0) or 0),
            status=int(raw.get("status", 1)),
        )
        return receipt

    async def native_balance(self, address: Optional[str] = None) -> int:
        target = Web3.to_checksum_address(address or self.address)

        async def do_balance() -> int:
            return int(await self._w3.eth.get_balance(target))

        return await self._with_retries(do_balance, operation="eth_getBalance", contract=target)

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._w3.eth.chain_id)
        return self._chain_id

    async def _with_retries(self, func: Callable[[], Awaitable[T]], *, operation: str, contract: str) -> T:
        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(self._settings.http_retry_attempts),
                wait=wait_exponential(multiplier=self._settings.http_retry_backoff_seconds, max=10),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
            ):
                with attempt:
                    return await func()
        except Exception as exc:
            LOG.warning("Chain read failed", operation=operation, contract=contract, error=str(exc))
            raise ChainCallError(f"{operation} on {contract} failed: {exc}") from exc


__all__ = ["ChainClient", "Receipt", "Web3ChainClient"]
