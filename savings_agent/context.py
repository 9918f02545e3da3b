"""Explicit engine context passed by reference to every component."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from savings_agent.chain.client import ChainClient
from savings_agent.chain.contracts import ContractAddresses
from savings_agent.chain.transactions import TransactionHelper
from savings_agent.core.config import Settings
from savings_agent.ledger.costs import CostLedger
from savings_agent.ledger.plan_store import PlanStore

if TYPE_CHECKING:
    from savings_agent.sync.metrics_sink import MetricsSink


@dataclass
class EngineContext:
    settings: Settings
    chain: ChainClient
    transactions: TransactionHelper
    store: PlanStore
    costs: CostLedger
    contracts: ContractAddresses
    sink: Optional["MetricsSink"] = None

    @classmethod
    def create(cls, settings: Settings, chain: ChainClient) -> "EngineContext":
        """Wire the ledgers and transaction helper for ``chain`` from ``settings``."""

        costs = CostLedger(settings.data_dir)
        return cls(
            settings=settings,
            chain=chain,
            transactions=TransactionHelper(
                chain,
                costs,
                attribution_code=settings.attribution_code,
                native_asset_price_usd=settings.native_asset_price_usd,
            ),
            store=PlanStore(settings.data_dir),
            costs=costs,
            contracts=ContractAddresses.from_settings(settings),
        )


__all__ = ["EngineContext"]
