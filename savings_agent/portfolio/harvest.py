"""Yield accrual and harvesting with management-fee bookkeeping."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from savings_agent.chain.contracts import VAULT_DRIP, VAULT_HARVEST, VAULT_PENDING_YIELD
from savings_agent.chain.units import USDC_DECIMALS, format_units
from savings_agent.context import EngineContext
from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import SerializableModel, TransactionType, utcnow
from savings_agent.portfolio.records import record_transaction


LOG = get_logger(__name__)

# 0.001 USDC in smallest units
MIN_HARVEST_UNITS = 1_000
BPS_DENOMINATOR = 10_000


class HarvestResult(SerializableModel):
    harvested: bool
    pending_yield: str
    fee_collected: float
    tx_hash: Optional[str] = None


def management_fee_units(pending_units: int, fee_bps: int) -> int:
    """Fee share of ``pending_units`` computed in integer units."""

    return pending_units * fee_bps // BPS_DENOMINATOR


class HarvestController:
    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    async def harvest(self, plan_id: str) -> HarvestResult:
        """Accrue, then harvest if the pending yield clears the minimum floor."""

        if self._ctx.store.get(plan_id) is None:
            return HarvestResult(harvested=False, pending_yield="0", fee_collected=0.0)

        chain = self._ctx.chain
        vault = self._ctx.contracts.savings_vault
        owner = chain.address

        await self._ctx.transactions.send(vault, VAULT_DRIP, [owner], action="drip")

        pending: int = await chain.read_call(vault, VAULT_PENDING_YIELD, [owner])
        pending_formatted = format_units(pending, USDC_DECIMALS)
        if pending < MIN_HARVEST_UNITS:
            LOG.debug("Pending yield below harvest floor", plan_id=plan_id, pending_yield=pending_formatted)
            return HarvestResult(harvested=False, pending_yield=pending_formatted, fee_collected=0.0)

        sent = await self._ctx.transactions.send(vault, VAULT_HARVEST, [owner], action="harvest")

        fee_units = management_fee_units(pending, self._ctx.settings.management_fee_bps)
        fee_usdc = float(Decimal(fee_units).scaleb(-USDC_DECIMALS))
        self._ctx.costs.record_revenue("management_fee", fee_usdc, sent.tx_hash)

        # The audit record carries the gross yield; the on-chain split is the vault's job.
        record_transaction(
            self._ctx,
            plan_id,
            sent,
            tx_type=TransactionType.harvest,
            token_in="Vault Yield",
            token_out="USDC",
            amount_in=pending_formatted,
            amount_out=pending_formatted,
        )
        self._ctx.store.update(plan_id, last_harvested_at=utcnow())

        LOG.info(
            "Yield harvested",
            plan_id=plan_id,
            pending_yield=pending_formatted,
            fee_collected=fee_usdc,
            tx_hash=sent.tx_hash,
        )
        if self._ctx.sink is not None:
            self._ctx.sink.sync_in_background()

        return HarvestResult(
            harvested=True,
            pending_yield=pending_formatted,
            fee_collected=fee_usdc,
            tx_hash=sent.tx_hash,
        )


__all__ = ["HarvestController", "HarvestResult", "MIN_HARVEST_UNITS", "management_fee_units"]
