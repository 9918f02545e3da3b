"""Push a flattened stats row to the external metrics table."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from savings_agent.core.config import Settings
from savings_agent.core.errors import SyncError
from savings_agent.core.logging import get_logger
from savings_agent.dashboard.service import StatsService
from savings_agent.ledger.models import utcnow


LOG = get_logger(__name__)

STATS_TABLE_PATH = "/rest/v1/bot_stats"


def flatten_stats(stats: dict[str, Any]) -> dict[str, Any]:
    """Map the nested stats view onto the sink's flat row schema."""

    wallet = stats["wallet_balances"]
    sustainability = stats["sustainability"]
    portfolio = stats["portfolio"]
    uptime = stats["uptime"]
    return {
        "agent_address": stats["agent_address"],
        "eth_balance_wei": wallet["native_wei"],
        "eth_balance_usd": wallet["native_usd"],
        "usdc_balance_raw": wallet["usdc_raw"],
        "usdc_balance_formatted": wallet["usdc_formatted"],
        "total_revenue": sustainability["total_revenue"],
        "total_compute_cost": sustainability["total_compute_cost"],
        "total_gas_cost": sustainability["total_gas_cost"],
        "net_balance": sustainability["net_balance"],
        "is_self_sustaining": sustainability["is_self_sustaining"],
        "total_managed_usdc": portfolio["total_managed_usdc"],
        "active_plans": portfolio["active_plans"],
        "last_rebalance": portfolio["last_rebalance"],
        "last_harvest": portfolio["last_harvest"],
        "started_at": uptime["started_at"],
        "autonomous_actions": uptime["autonomous_actions"],
        "transactions_executed": uptime["transactions_executed"],
        "updated_at": utcnow().isoformat(),
    }


class MetricsSink:
    """Best-effort publisher; failures are logged and never raised to callers."""

    def __init__(
        self,
        settings: Settings,
        stats: StatsService,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not settings.metrics_sink_url or settings.metrics_sink_key is None:
            raise ValueError("Metrics sink requires METRICS_SINK_URL and METRICS_SINK_KEY")
        self._url = f"{settings.metrics_sink_url}{STATS_TABLE_PATH}"
        self._key = settings.metrics_sink_key.get_secret_value()
        self._timeout = settings.http_timeout_seconds
        self._stats = stats
        self._client = client
        self._pending: set[asyncio.Task[bool]] = set()

    @classmethod
    def from_settings(cls, settings: Settings, stats: StatsService) -> Optional["MetricsSink"]:
        """Return a sink when one is configured, otherwise ``None``."""

        if not settings.metrics_sink_url or settings.metrics_sink_key is None:
            return None
        return cls(settings, stats)

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates",
        }

    async def push(self, row: dict[str, Any]) -> None:
        """POST ``row``; raises SyncError on transport or HTTP failure."""

        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=row, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=row, headers=self._headers())
        except httpx.HTTPError as exc:
            raise SyncError(f"Metrics sink unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise SyncError(
                f"Metrics sink rejected push ({response.status_code}): {response.text[:256]}",
                status_code=response.status_code,
            )

    async def sync(self) -> bool:
        """Collect and push current stats; return whether the push succeeded."""

        try:
            row = flatten_stats(await self._stats.collect())
            await self.push(row)
        except SyncError as exc:
            LOG.warning("Metrics sync failed", error=str(exc), status_code=exc.status_code)
            return False
        except Exception as exc:  # pragma: no cover - sink must never break the caller
            LOG.warning("Metrics sync error", error=str(exc))
            return False
        LOG.info("Synced stats to metrics sink")
        return True

    def sync_in_background(self) -> asyncio.Task[bool]:
        """Schedule ``sync`` without waiting for it."""

        task = asyncio.get_running_loop().create_task(self.sync())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled pushes to finish."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["MetricsSink", "flatten_stats", "STATS_TABLE_PATH"]
