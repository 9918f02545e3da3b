"""Fixed-period loop that harvests and rebalances every active plan."""

from __future__ import annotations

import asyncio
from typing import Literal, Optional

from savings_agent.context import EngineContext
from savings_agent.core.logging import get_logger
from savings_agent.portfolio.harvest import HarvestController
from savings_agent.portfolio.rebalance import Rebalancer


LOG = get_logger(__name__)

IDLE_TICK_COST_USD = 0.001
PLAN_TICK_COST_USD = 0.005

LoopState = Literal["stopped", "running"]


class LoopHandle:
    """Lifecycle handle returned by ``AutonomousLoop.start``."""

    def __init__(self, loop: "AutonomousLoop") -> None:
        self._loop = loop

    @property
    def state(self) -> LoopState:
        return self._loop.state

    def stop(self) -> None:
        self._loop.stop()

    async def wait(self) -> None:
        await self._loop.wait_stopped()


class AutonomousLoop:
    """Tick every ``interval_seconds``: harvest then rebalance each active plan.

    Plans are processed one after another so the single signing identity never
    has two plans' transactions in flight. A failure in one plan's harvest or
    rebalance is logged and the tick moves on.
    """

    def __init__(
        self,
        ctx: EngineContext,
        harvester: HarvestController,
        rebalancer: Rebalancer,
        *,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._ctx = ctx
        self._harvester = harvester
        self._rebalancer = rebalancer
        self._interval = interval_seconds or ctx.settings.rebalance_interval_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._handle: Optional[LoopHandle] = None

    @property
    def state(self) -> LoopState:
        if self._task is not None and not self._task.done() and not self._stop_requested():
            return "running"
        return "stopped"

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> LoopHandle:
        """Install the periodic timer; calling it while running returns the same handle."""

        if self.state == "running" and self._handle is not None:
            return self._handle
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop_event))
        self._handle = LoopHandle(self)
        LOG.info("Autonomous loop starting", interval_minutes=round(self._interval / 60, 2))
        return self._handle

    def stop(self) -> None:
        """Prevent further ticks; a tick already running is allowed to finish."""

        if self._stop_event is None or self._stop_event.is_set():
            return
        self._stop_event.set()
        LOG.info("Autonomous loop stopped")

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    async def run_once(self) -> None:
        """Run one tick; never raises."""

        try:
            await self._tick()
        except Exception:
            LOG.exception("Autonomous loop error")

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                await self.run_once()

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _tick(self) -> None:
        costs = self._ctx.costs
        plans = self._ctx.store.get_active()

        if not plans:
            costs.record_compute_cost("autonomous_loop_idle", IDLE_TICK_COST_USD)
        for plan in plans:
            LOG.info("Processing plan", plan_id=plan.plan_id, goal=plan.goal)

            try:
                harvest = await self._harvester.harvest(plan.plan_id)
                if harvest.harvested:
                    LOG.info(
                        "Harvested yield",
                        plan_id=plan.plan_id,
                        pending_yield=harvest.pending_yield,
                        fee_collected=round(harvest.fee_collected, 4),
                    )
            except Exception as exc:
                LOG.error("Harvest failed", plan_id=plan.plan_id, error=str(exc))

            try:
                result = await self._rebalancer.rebalance(plan.plan_id)
                if result.rebalanced:
                    LOG.info("Rebalanced plan", plan_id=plan.plan_id, trades=len(result.trades))
                else:
                    LOG.info("No rebalance needed", plan_id=plan.plan_id, max_drift=round(result.max_drift, 1))
            except Exception as exc:
                LOG.error("Rebalance failed", plan_id=plan.plan_id, error=str(exc))

            costs.record_compute_cost("autonomous_loop", PLAN_TICK_COST_USD)

        LOG.info(
            "Sustainability",
            self_sustaining=costs.is_self_sustaining(),
            net_balance=round(costs.net_balance(), 4),
        )
        if self._ctx.sink is not None:
            self._ctx.sink.sync_in_background()


__all__ = ["AutonomousLoop", "LoopHandle", "IDLE_TICK_COST_USD", "PLAN_TICK_COST_USD"]
