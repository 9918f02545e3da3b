"""Single-call wrapper around encode → attribute → submit → receipt → fiat gas cost."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from savings_agent.chain.attribution import attribute
from savings_agent.chain.client import ChainClient, Receipt
from savings_agent.chain.contracts import encode_call
from savings_agent.chain.units import WEI_PER_NATIVE
from savings_agent.core.errors import ChainCallError
from savings_agent.core.logging import get_logger
from savings_agent.ledger.costs import CostLedger


LOG = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SentCall:
    tx_hash: str
    gas_used: int
    gas_cost_usd: float


def gas_cost_usd(receipt: Receipt, native_asset_price_usd: float) -> float:
    """Convert ``gas_used × effective_gas_price`` wei to fiat at a fixed native price."""

    wei = receipt.gas_used * receipt.effective_gas_price
    return float(Decimal(wei) / Decimal(WEI_PER_NATIVE) * Decimal(str(native_asset_price_usd)))


class TransactionHelper:
    """Submit attributed contract calls and book their gas cost."""

    def __init__(
        self,
        client: ChainClient,
        costs: CostLedger,
        *,
        attribution_code: str,
        native_asset_price_usd: float,
    ) -> None:
        self._client = client
        self._costs = costs
        self._code = attribution_code
        self._native_price = native_asset_price_usd

    @property
    def client(self) -> ChainClient:
        return self._client

    async def send(self, contract: str, signature: str, args: Sequence[Any], *, action: str) -> SentCall:
        """Submit one call, wait for it to be mined and record its gas as ``action``.

        Raises:
            ChainCallError: if submission fails or the transaction reverts.
        """

        data = attribute(encode_call(signature, args), self._code)
        tx_hash = await self._client.send_transaction(contract, data)
        receipt = await self._client.wait_for_receipt(tx_hash)
        cost = gas_cost_usd(receipt, self._native_price)
        # Reverted transactions still consume gas.
        self._costs.record_gas_cost(action, cost, tx_hash)
        if receipt.status != 1:
            LOG.warning("Transaction reverted", action=action, signature=signature, tx_hash=tx_hash)
            raise ChainCallError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        LOG.info(
            "Transaction mined",
            action=action,
            signature=signature,
            tx_hash=tx_hash,
            gas_used=receipt.gas_used,
            gas_cost_usd=round(cost, 6),
        )
        return SentCall(tx_hash=tx_hash, gas_used=receipt.gas_used, gas_cost_usd=cost)


__all__ = ["SentCall", "TransactionHelper", "gas_cost_usd"]
