"""Live portfolio snapshot: on-chain holdings, fiat values, allocation and drift."""

from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import Field

from savings_agent.chain.contracts import (
    BALANCE_OF,
    HEDGE_BUCKETS,
    ROUTER_PRICE,
    VAULT_DEPOSITS,
    Bucket,
)
from savings_agent.chain.units import HEDGE_DECIMALS, TOKEN_SCALE, USDC_DECIMALS, format_units, to_float
from savings_agent.context import EngineContext
from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import Allocation, SerializableModel


LOG = get_logger(__name__)


class Holding(SerializableModel):
    balance: str
    value_usdc: float


class BucketWeights(SerializableModel):
    """Per-bucket percentages without the [0, 100] bound of a target allocation."""

    stable: float = 0.0
    real_estate_hedge: float = 0.0
    equity_hedge: float = 0.0
    bond_hedge: float = 0.0

    def get(self, bucket: Bucket) -> float:
        return getattr(self, bucket.value)


class Drift(BucketWeights):
    max_drift: float = 0.0


class PortfolioSnapshot(SerializableModel):
    plan_id: str
    holdings: dict[Bucket, Holding] = Field(default_factory=dict)
    total_value_usdc: float
    current_allocation: BucketWeights
    drift: Drift

    def holding(self, bucket: Bucket) -> Holding:
        return self.holdings[bucket]


def compute_weights(values: dict[Bucket, float]) -> BucketWeights:
    """Percent of total per bucket; an empty portfolio is all zeros."""

    total = sum(values.values())
    if total <= 0:
        return BucketWeights()
    return BucketWeights(**{bucket.value: 100 * value / total for bucket, value in values.items()})


def compute_drift(current: BucketWeights, target: Allocation) -> Drift:
    gaps = {bucket.value: abs(current.get(bucket) - target.get(bucket)) for bucket in Bucket}
    return Drift(**gaps, max_drift=max(gaps.values()))


def hedge_value_usdc(balance: int, price: int) -> float:
    """Fiat value of ``balance`` hedge units at ``price`` stable units per whole token."""

    return to_float(balance * price // TOKEN_SCALE, USDC_DECIMALS)


class SnapshotCalculator:
    """Read holdings and prices for the agent's address and compare them to a plan."""

    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    async def hedge_price(self, bucket: Bucket) -> int:
        contracts = self._ctx.contracts
        return await self._ctx.chain.read_call(
            contracts.hedge_router, ROUTER_PRICE, [contracts.hedge_token(bucket)]
        )

    async def snapshot(self, plan_id: str) -> Optional[PortfolioSnapshot]:
        """Return the plan's snapshot, or ``None`` when the plan does not exist."""

        plan = self._ctx.store.get(plan_id)
        if plan is None:
            return None

        chain = self._ctx.chain
        contracts = self._ctx.contracts
        owner = chain.address

        stable_balance, *hedge_balances = await asyncio.gather(
            chain.read_call(contracts.savings_vault, VAULT_DEPOSITS, [owner]),
            *(chain.read_call(contracts.hedge_token(bucket), BALANCE_OF, [owner]) for bucket in HEDGE_BUCKETS),
        )
        prices = await asyncio.gather(*(self.hedge_price(bucket) for bucket in HEDGE_BUCKETS))

        holdings: dict[Bucket, Holding] = {
            Bucket.STABLE: Holding(
                balance=format_units(stable_balance, USDC_DECIMALS),
                value_usdc=to_float(stable_balance, USDC_DECIMALS),
            )
        }
        for bucket, balance, price in zip(HEDGE_BUCKETS, hedge_balances, prices):
            holdings[bucket] = Holding(
                balance=format_units(balance, HEDGE_DECIMALS),
                value_usdc=hedge_value_usdc(balance, price),
            )

        values = {bucket: holding.value_usdc for bucket, holding in holdings.items()}
        total = sum(values.values())
        current = compute_weights(values)
        # Nothing held yet: report no drift rather than the full target.
        drift = compute_drift(current, plan.allocation) if total > 0 else Drift()
        snapshot = PortfolioSnapshot(
            plan_id=plan_id,
            holdings=holdings,
            total_value_usdc=total,
            current_allocation=current,
            drift=drift,
        )
        LOG.debug(
            "Snapshot computed",
            plan_id=plan_id,
            total_value_usdc=snapshot.total_value_usdc,
            max_drift=round(drift.max_drift, 4),
        )
        return snapshot


__all__ = [
    "BucketWeights",
    "Drift",
    "Holding",
    "PortfolioSnapshot",
    "SnapshotCalculator",
    "compute_drift",
    "compute_weights",
    "hedge_value_usdc",
]
