"""Read-only statistics over the ledgers and the agent wallet."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

from savings_agent.chain.contracts import BALANCE_OF
from savings_agent.chain.units import USDC_DECIMALS, WEI_PER_NATIVE, to_float
from savings_agent.context import EngineContext
from savings_agent.core.errors import ChainCallError
from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import PlanStatus, utcnow


LOG = get_logger(__name__)

MANAGED_STATUSES = frozenset({PlanStatus.active, PlanStatus.rebalancing})
AUTONOMOUS_ACTION_PREFIX = "autonomous"
HISTORY_LIMIT = 10_000


def _latest(values: list[Optional[datetime]]) -> Optional[str]:
    present = [value for value in values if value is not None]
    return max(present).isoformat() if present else None


class StatsService:
    """Assemble the agent's balances, sustainability and activity counters."""

    def __init__(self, ctx: EngineContext, *, started_at: Optional[datetime] = None) -> None:
        self._ctx = ctx
        self._started_at = started_at or utcnow()

    @property
    def started_at(self) -> datetime:
        return self._started_at

    async def wallet_balances(self) -> tuple[int, int]:
        """Native wei and stable units held by the agent; zeros if the RPC is unavailable."""

        chain = self._ctx.chain
        try:
            native, stable = await asyncio.gather(
                chain.native_balance(),
                chain.read_call(self._ctx.contracts.usdc, BALANCE_OF, [chain.address]),
            )
        except ChainCallError as exc:
            LOG.warning("Wallet balance read failed", error=str(exc))
            return 0, 0
        return int(native), int(stable)

    async def collect(self) -> dict[str, Any]:
        native_wei, stable_units = await self.wallet_balances()
        native_usd = native_wei / WEI_PER_NATIVE * self._ctx.settings.native_asset_price_usd

        costs = self._ctx.costs
        plans = [plan for plan in self._ctx.store.get_all() if plan.status in MANAGED_STATUSES]
        autonomous_actions = sum(
            1 for entry in costs.recent_costs(HISTORY_LIMIT) if entry.action.startswith(AUTONOMOUS_ACTION_PREFIX)
        )

        return {
            "agent_address": self._ctx.chain.address,
            "wallet_balances": {
                "native_wei": str(native_wei),
                "native_usd": round(native_usd, 2),
                "usdc_raw": str(stable_units),
                "usdc_formatted": round(to_float(stable_units, USDC_DECIMALS), 2),
            },
            "sustainability": {
                "total_revenue": round(costs.total_revenue(), 4),
                "total_compute_cost": round(costs.total_compute_cost(), 4),
                "total_gas_cost": round(costs.total_gas_cost(), 4),
                "net_balance": round(costs.net_balance(), 4),
                "is_self_sustaining": costs.is_self_sustaining(),
            },
            "portfolio": {
                "total_managed_usdc": sum(plan.deposit_amount_usdc for plan in plans),
                "active_plans": len(plans),
                "last_rebalance": _latest([plan.last_rebalanced_at for plan in plans]),
                "last_harvest": _latest([plan.last_harvested_at for plan in plans]),
            },
            "uptime": {
                "started_at": self._started_at.isoformat(),
                "autonomous_actions": autonomous_actions,
                "transactions_executed": self._ctx.store.transaction_count(),
            },
        }


__all__ = ["StatsService"]
