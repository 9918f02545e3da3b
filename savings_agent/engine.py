"""Engine facade exposing the agent's tool entry points and lifecycle."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from savings_agent.chain.client import ChainClient, Web3ChainClient
from savings_agent.context import EngineContext
from savings_agent.core.config import Settings, get_settings
from savings_agent.core.errors import PlanNotFoundError
from savings_agent.core.logging import get_logger
from savings_agent.dashboard.service import StatsService
from savings_agent.ledger.models import SavingsPlan
from savings_agent.portfolio.execution import ExecutionSummary, TradeExecutor
from savings_agent.portfolio.harvest import HarvestController, HarvestResult
from savings_agent.portfolio.planner import profile_goal
from savings_agent.portfolio.rebalance import RebalanceResult, Rebalancer
from savings_agent.portfolio.snapshot import PortfolioSnapshot, SnapshotCalculator
from savings_agent.scheduler.loop import AutonomousLoop, LoopHandle
from savings_agent.sync.metrics_sink import MetricsSink


LOG = get_logger(__name__)

TOOL_COSTS_USD: dict[str, float] = {
    "create_plan": 0.03,
    "execute_trades": 0.01,
    "check_portfolio": 0.01,
    "rebalance": 0.02,
    "harvest_yield": 0.01,
}


class SavingsEngine:
    """Pure operations a host binds to its own invocation mechanism."""

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self.snapshots = SnapshotCalculator(ctx)
        self.executor = TradeExecutor(ctx)
        self.rebalancer = Rebalancer(ctx, self.snapshots)
        self.harvester = HarvestController(ctx)
        self.stats = StatsService(ctx)
        self.loop = AutonomousLoop(ctx, self.harvester, self.rebalancer)
        self._tools: dict[str, Callable[..., Awaitable[Any]]] = {
            "create_plan": self.create_plan,
            "execute_trades": self.execute_trades,
            "check_portfolio": self.check_portfolio,
            "rebalance": self.rebalance,
            "harvest_yield": self.harvest_yield,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    async def create_plan(self, goal: str, deposit_amount_usdc: float, user_address: str) -> SavingsPlan:
        self.ctx.costs.record_compute_cost("create_plan", TOOL_COSTS_USD["create_plan"])
        profile = profile_goal(goal)
        return self.ctx.store.create(
            user_address=user_address,
            goal=goal,
            timeline=profile.timeline,
            risk_level=profile.risk_level,
            allocation=profile.allocation,
            deposit_amount_usdc=deposit_amount_usdc,
        )

    async def execute_trades(self, plan_id: str) -> ExecutionSummary:
        self.ctx.costs.record_compute_cost("execute_trades", TOOL_COSTS_USD["execute_trades"])
        return await self.executor.execute(plan_id)

    async def check_portfolio(self, plan_id: str) -> PortfolioSnapshot:
        self.ctx.costs.record_compute_cost("check_portfolio", TOOL_COSTS_USD["check_portfolio"])
        snapshot = await self.snapshots.snapshot(plan_id)
        if snapshot is None:
            raise PlanNotFoundError(plan_id)
        return snapshot

    async def rebalance(self, plan_id: str) -> RebalanceResult:
        self.ctx.costs.record_compute_cost("rebalance", TOOL_COSTS_USD["rebalance"])
        return await self.rebalancer.rebalance(plan_id)

    async def harvest_yield(self, plan_id: str) -> HarvestResult:
        self.ctx.costs.record_compute_cost("harvest_yield", TOOL_COSTS_USD["harvest_yield"])
        return await self.harvester.harvest(plan_id)

    async def invoke(self, tool: str, params: dict[str, Any]) -> dict[str, Any]:
        """Run a tool by name and return a JSON-ready payload.

        Unknown plans come back as ``{"error": ...}`` rather than an exception.
        """

        try:
            handler = self._tools[tool]
        except KeyError:
            raise ValueError(f"Unknown tool {tool}") from None
        try:
            result = await handler(**params)
        except PlanNotFoundError as exc:
            LOG.info("Tool referenced unknown plan", tool=tool, plan_id=exc.plan_id)
            return {"error": str(exc)}
        return result.model_dump(mode="json")

    def start(self) -> LoopHandle:
        """Start the autonomous loop and return its lifecycle handle."""

        return self.loop.start()


def build_engine(settings: Optional[Settings] = None, *, chain: Optional[ChainClient] = None) -> SavingsEngine:
    """Wire a live engine: web3 client, JSON ledgers, optional metrics sink."""

    settings = settings or get_settings()
    chain = chain or Web3ChainClient(settings)
    ctx = EngineContext.create(settings, chain)
    engine = SavingsEngine(ctx)
    ctx.sink = MetricsSink.from_settings(settings, engine.stats)
    LOG.info(
        "Engine initialised",
        wallet=chain.address,
        rpc_url=settings.rpc_url,
        attribution_code=settings.attribution_code,
        data_dir=str(settings.data_dir),
    )
    return engine


__all__ = ["SavingsEngine", "TOOL_COSTS_USD", "build_engine"]
