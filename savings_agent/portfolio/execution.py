"""Initial trade execution: fund the vault and buy hedge tokens to a plan's targets."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import List

from savings_agent.chain.contracts import (
    APPROVE,
    HEDGE_BUCKETS,
    ROUTER_BUY,
    TOKEN_SYMBOLS,
    VAULT_DEPOSIT,
    Bucket,
)
from savings_agent.chain.units import USDC_DECIMALS, format_units, to_base_units
from savings_agent.context import EngineContext
from savings_agent.core.errors import PlanNotFoundError
from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import PlanStatus, SavingsPlan, SerializableModel, TransactionType
from savings_agent.portfolio.records import record_transaction


LOG = get_logger(__name__)


class ExecutionSummary(SerializableModel):
    plan_id: str
    status: PlanStatus
    trades_executed: int
    trades: List[str]


def split_deposit(plan: SavingsPlan) -> dict[Bucket, int]:
    """Split the deposit into per-bucket stable-asset units, rounding each share down."""

    total_units = to_base_units(plan.deposit_amount_usdc, USDC_DECIMALS)
    amounts: dict[Bucket, int] = {}
    for bucket in Bucket:
        share = Decimal(total_units) * Decimal(str(plan.allocation.get(bucket))) / Decimal(100)
        amounts[bucket] = int(share.to_integral_value(rounding=ROUND_DOWN))
    return amounts


class TradeExecutor:
    """Move a freshly created plan's capital on-chain."""

    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    async def execute(self, plan_id: str) -> ExecutionSummary:
        """Approve, deposit the stable share and buy each hedge share.

        Raises:
            PlanNotFoundError: if ``plan_id`` is unknown.
            ChainCallError: if any call fails; earlier calls stay committed.
        """

        plan = self._ctx.store.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)

        contracts = self._ctx.contracts
        amounts = split_deposit(plan)
        stable_amount = amounts[Bucket.STABLE]
        router_total = sum(amounts[bucket] for bucket in HEDGE_BUCKETS)
        trades: list[str] = []

        LOG.info("Executing plan trades", plan_id=plan_id, deposit_usdc=plan.deposit_amount_usdc)

        if stable_amount > 0:
            await self._approve(plan_id, contracts.savings_vault, stable_amount)
        if router_total > 0:
            await self._approve(plan_id, contracts.hedge_router, router_total)

        if stable_amount > 0:
            sent = await self._ctx.transactions.send(
                contracts.savings_vault, VAULT_DEPOSIT, [stable_amount], action="deposit"
            )
            amount = format_units(stable_amount, USDC_DECIMALS)
            record_transaction(
                self._ctx,
                plan_id,
                sent,
                tx_type=TransactionType.deposit,
                token_in="USDC",
                token_out="Vault",
                amount_in=amount,
                amount_out=amount,
            )
            trades.append(f"Deposited {amount} USDC to vault: {sent.tx_hash}")

        for bucket in HEDGE_BUCKETS:
            usdc_amount = amounts[bucket]
            if usdc_amount <= 0:
                continue
            symbol = TOKEN_SYMBOLS[bucket]
            sent = await self._ctx.transactions.send(
                contracts.hedge_router,
                ROUTER_BUY,
                [contracts.hedge_token(bucket), usdc_amount],
                action="swap_buy",
            )
            amount = format_units(usdc_amount, USDC_DECIMALS)
            # Buys are booked 1:1 in stable terms at call time.
            record_transaction(
                self._ctx,
                plan_id,
                sent,
                tx_type=TransactionType.swap_buy,
                token_in="USDC",
                token_out=symbol,
                amount_in=amount,
                amount_out=amount,
            )
            trades.append(f"Bought {symbol} with {amount} USDC: {sent.tx_hash}")

        self._ctx.store.update(plan_id, status=PlanStatus.active)
        LOG.info("Plan trades executed", plan_id=plan_id, trades=len(trades))
        return ExecutionSummary(
            plan_id=plan_id,
            status=PlanStatus.active,
            trades_executed=len(trades),
            trades=trades,
        )

    async def _approve(self, plan_id: str, spender: str, amount: int) -> None:
        sent = await self._ctx.transactions.send(
            self._ctx.contracts.usdc, APPROVE, [spender, amount], action="approve"
        )
        record_transaction(
            self._ctx,
            plan_id,
            sent,
            tx_type=TransactionType.approve,
            token_in="USDC",
            token_out="-",
            amount_in=format_units(amount, USDC_DECIMALS),
            amount_out="0",
        )


__all__ = ["ExecutionSummary", "TradeExecutor", "split_deposit"]
