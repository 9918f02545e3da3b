"""Drift-triggered rebalancing of the three hedge buckets."""

from __future__ import annotations

from typing import List

from savings_agent.chain.contracts import APPROVE, HEDGE_BUCKETS, ROUTER_BUY, ROUTER_SELL, TOKEN_SYMBOLS, Bucket
from savings_agent.chain.units import HEDGE_DECIMALS, TOKEN_SCALE, USDC_DECIMALS, format_units, to_base_units
from savings_agent.context import EngineContext
from savings_agent.core.errors import ChainCallError
from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import PlanStatus, SerializableModel, TransactionType, utcnow
from savings_agent.portfolio.records import record_transaction
from savings_agent.portfolio.snapshot import SnapshotCalculator


LOG = get_logger(__name__)

MATERIALITY_FLOOR_USDC = 0.10


class RebalanceResult(SerializableModel):
    rebalanced: bool
    trades: List[str]
    max_drift: float


class Rebalancer:
    """Close per-bucket gaps between current and target value once drift is material."""

    def __init__(self, ctx: EngineContext, snapshots: SnapshotCalculator) -> None:
        self._ctx = ctx
        self._snapshots = snapshots

    async def rebalance(self, plan_id: str) -> RebalanceResult:
        """Trade each hedge bucket back toward target if max drift reaches the threshold.

        Below the threshold nothing is submitted and the plan is left untouched.
        A failing leg propagates; legs already mined stay committed.
        """

        snapshot = await self._snapshots.snapshot(plan_id)
        if snapshot is None:
            return RebalanceResult(rebalanced=False, trades=[], max_drift=0.0)

        max_drift = snapshot.drift.max_drift
        threshold = self._ctx.settings.rebalance_threshold_percent
        if max_drift < threshold:
            LOG.debug("Drift below threshold", plan_id=plan_id, max_drift=round(max_drift, 4), threshold=threshold)
            return RebalanceResult(rebalanced=False, trades=[], max_drift=max_drift)

        plan = self._ctx.store.get(plan_id)
        if plan is None:
            return RebalanceResult(rebalanced=False, trades=[], max_drift=0.0)

        LOG.info("Rebalancing plan", plan_id=plan_id, max_drift=round(max_drift, 4), threshold=threshold)
        previous_status = plan.status
        self._ctx.store.update(plan_id, status=PlanStatus.rebalancing)

        total_value = snapshot.total_value_usdc
        trades: list[str] = []
        try:
            for bucket in HEDGE_BUCKETS:
                target_value = total_value * plan.allocation.get(bucket) / 100
                delta = target_value - snapshot.holding(bucket).value_usdc
                if abs(delta) < MATERIALITY_FLOOR_USDC:
                    continue
                if delta > 0:
                    trades.append(await self._buy(plan_id, bucket, delta))
                else:
                    trades.append(await self._sell(plan_id, bucket, -delta))
        except Exception:
            LOG.warning("Rebalance aborted", plan_id=plan_id, completed_trades=len(trades))
            self._ctx.store.update(plan_id, status=previous_status)
            raise

        self._ctx.store.update(plan_id, status=PlanStatus.active, last_rebalanced_at=utcnow())
        LOG.info("Rebalance complete", plan_id=plan_id, trades=len(trades))
        return RebalanceResult(rebalanced=True, trades=trades, max_drift=max_drift)

    async def _buy(self, plan_id: str, bucket: Bucket, usdc_value: float) -> str:
        contracts = self._ctx.contracts
        symbol = TOKEN_SYMBOLS[bucket]
        usdc_amount = to_base_units(f"{usdc_value:.{USDC_DECIMALS}f}", USDC_DECIMALS)

        await self._approve(plan_id, contracts.usdc, "USDC", usdc_amount, USDC_DECIMALS)
        sent = await self._ctx.transactions.send(
            contracts.hedge_router,
            ROUTER_BUY,
            [contracts.hedge_token(bucket), usdc_amount],
            action="rebalance_buy",
        )
        # Fill is booked 1:1 at call time, not from the router's actual output.
        record_transaction(
            self._ctx,
            plan_id,
            sent,
            tx_type=TransactionType.rebalance,
            token_in="USDC",
            token_out=symbol,
            amount_in=f"{usdc_value:.2f}",
            amount_out=f"{usdc_value:.2f}",
        )
        return f"Bought {usdc_value:.2f} USDC of {symbol}: {sent.tx_hash}"

    async def _sell(self, plan_id: str, bucket: Bucket, usdc_value: float) -> str:
        contracts = self._ctx.contracts
        symbol = TOKEN_SYMBOLS[bucket]
        token = contracts.hedge_token(bucket)

        price = await self._snapshots.hedge_price(bucket)
        if price <= 0:
            raise ChainCallError(f"Router quoted no price for {symbol}")
        usdc_amount = to_base_units(f"{usdc_value:.{USDC_DECIMALS}f}", USDC_DECIMALS)
        hedge_amount = usdc_amount * TOKEN_SCALE // price

        await self._approve(plan_id, token, symbol, hedge_amount, HEDGE_DECIMALS)
        sent = await self._ctx.transactions.send(
            contracts.hedge_router,
            ROUTER_SELL,
            [token, hedge_amount],
            action="rebalance_sell",
        )
        record_transaction(
            self._ctx,
            plan_id,
            sent,
            tx_type=TransactionType.rebalance,
            token_in=symbol,
            token_out="USDC",
            amount_in=format_units(hedge_amount, HEDGE_DECIMALS),
            amount_out=f"{usdc_value:.2f}",
        )
        return f"Sold {usdc_value:.2f} USDC of {symbol}: {sent.tx_hash}"

    async def _approve(self, plan_id: str, token: str, symbol: str, amount: int, decimals: int) -> None:
        sent = await self._ctx.transactions.send(
            token, APPROVE, [self._ctx.contracts.hedge_router, amount], action="approve"
        )
        record_transaction(
            self._ctx,
            plan_id,
            sent,
            tx_type=TransactionType.approve,
            token_in=symbol,
            token_out="-",
            amount_in=format_units(amount, decimals),
            amount_out="0",
        )


__all__ = ["MATERIALITY_FLOOR_USDC", "RebalanceResult", "Rebalancer"]
