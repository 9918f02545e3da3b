"""Append-only cost and revenue ledger with derived sustainability views."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import CostEntry, CostType, RevenueEntry, RevenueSource
from savings_agent.storage.json_store import JsonCollection


LOG = get_logger(__name__)


class CostLedger:
    """Track what the automation spends and what it collects.

    Totals are summed from the in-memory logs on every call and never cached,
    so they always equal the sum of the recorded entries.
    """

    def __init__(self, data_dir: Path) -> None:
        self._costs_file = JsonCollection(data_dir / "costs.json", CostEntry)
        self._revenue_file = JsonCollection(data_dir / "revenue.json", RevenueEntry)
        self._costs: list[CostEntry] = self._costs_file.load()
        self._revenue: list[RevenueEntry] = self._revenue_file.load()

    def record_compute_cost(self, action: str, estimated_cost_usd: float) -> CostEntry:
        entry = CostEntry(type=CostType.compute, action=action, estimated_cost_usd=estimated_cost_usd)
        self._append_cost(entry)
        return entry

    def record_gas_cost(self, action: str, gas_cost_usd: float, tx_hash: Optional[str] = None) -> CostEntry:
        entry = CostEntry(type=CostType.gas, action=action, estimated_cost_usd=gas_cost_usd, tx_hash=tx_hash)
        self._append_cost(entry)
        return entry

    def record_revenue(
        self,
        source: RevenueSource,
        amount_usdc: float,
        tx_hash: Optional[str] = None,
    ) -> RevenueEntry:
        entry = RevenueEntry(source=source, amount_usdc=amount_usdc, tx_hash=tx_hash)
        self._revenue.append(entry)
        self._revenue_file.save(self._revenue)
        LOG.info("Revenue recorded", source=source, amount_usdc=amount_usdc, tx_hash=tx_hash)
        return entry

    def total_compute_cost(self) -> float:
        return sum(entry.estimated_cost_usd for entry in self._costs if entry.type == CostType.compute)

    def total_gas_cost(self) -> float:
        return sum(entry.estimated_cost_usd for entry in self._costs if entry.type == CostType.gas)

    def total_cost(self) -> float:
        return sum(entry.estimated_cost_usd for entry in self._costs)

    def total_revenue(self) -> float:
        return sum(entry.amount_usdc for entry in self._revenue)

    def net_balance(self) -> float:
        return self.total_revenue() - self.total_cost()

    def is_self_sustaining(self) -> bool:
        return self.total_revenue() >= self.total_cost()

    def recent_costs(self, limit: int = 50) -> list[CostEntry]:
        return [entry.model_copy() for entry in self._costs[-limit:]] if limit > 0 else []

    def recent_revenue(self, limit: int = 50) -> list[RevenueEntry]:
        return [entry.model_copy() for entry in self._revenue[-limit:]] if limit > 0 else []

    def _append_cost(self, entry: CostEntry) -> None:
        self._costs.append(entry)
        self._costs_file.save(self._costs)
        LOG.debug(
            "Cost recorded",
            type=entry.type.value,
            action=entry.action,
            estimated_cost_usd=entry.estimated_cost_usd,
            tx_hash=entry.tx_hash,
        )


__all__ = ["CostLedger"]
