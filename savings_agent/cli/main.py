"""Typer CLI entrypoint for savings plans, portfolio actions and the agent loop."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer
import uvicorn

from savings_agent.core.config import get_settings
from savings_agent.core.errors import AppError
from savings_agent.core.logging import get_logger, setup_logging
from savings_agent.dashboard.server import create_app
from savings_agent.engine import SavingsEngine, build_engine


LOG = get_logger(__name__)

app = typer.Typer(help="Autonomous savings agent toolkit.")
plan_cli = typer.Typer(help="Savings plan commands.")
trade_cli = typer.Typer(help="Initial allocation commands.")
portfolio_cli = typer.Typer(help="Portfolio maintenance commands.")

app.add_typer(plan_cli, name="plan")
app.add_typer(trade_cli, name="trade")
app.add_typer(portfolio_cli, name="portfolio")


def _engine() -> SavingsEngine:
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        return build_engine(settings)
    except AppError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


async def _invoke(tool: str, params: dict[str, Any]) -> None:
    engine = _engine()
    payload = await engine.invoke(tool, params)
    if engine.ctx.sink is not None:
        await engine.ctx.sink.drain()
    _echo(payload)
    if "error" in payload:
        raise typer.Exit(code=1)


@plan_cli.command("create")
def create_plan(
    goal: str = typer.Argument(..., help="Free-text savings goal"),
    deposit: float = typer.Option(..., "--deposit", min=0, help="Deposit amount in USDC"),
    user: str = typer.Option(..., "--user", help="Owner address recorded on the plan"),
) -> None:
    """Derive a timeline, risk level and allocation from a goal and store the plan."""

    asyncio.run(_invoke("create_plan", {"goal": goal, "deposit_amount_usdc": deposit, "user_address": user}))


@plan_cli.command("list")
def list_plans(active: bool = typer.Option(False, "--active", help="Only plans the loop will process")) -> None:
    """List stored savings plans."""

    engine = _engine()
    plans = engine.ctx.store.get_active() if active else engine.ctx.store.get_all()
    for plan in plans:
        allocation = plan.allocation
        typer.echo(
            f"plan_id={plan.plan_id} status={plan.status.value} deposit={plan.deposit_amount_usdc} "
            f"risk={plan.risk_level} timeline={plan.timeline} "
            f"allocation=[{allocation.stable}/{allocation.real_estate_hedge}/"
            f"{allocation.equity_hedge}/{allocation.bond_hedge}]"
        )


@trade_cli.command("execute")
def execute_trades(plan_id: str) -> None:
    """Deposit the stable share and buy each hedge share for a plan."""

    asyncio.run(_invoke("execute_trades", {"plan_id": plan_id}))


@portfolio_cli.command("check")
def check_portfolio(plan_id: str) -> None:
    """Show holdings, current allocation and drift for a plan."""

    asyncio.run(_invoke("check_portfolio", {"plan_id": plan_id}))


@portfolio_cli.command("rebalance")
def rebalance(plan_id: str) -> None:
    """Trade a plan back to its target allocation when drift exceeds the threshold."""

    asyncio.run(_invoke("rebalance", {"plan_id": plan_id}))


@portfolio_cli.command("harvest")
def harvest_yield(plan_id: str) -> None:
    """Accrue and harvest vault yield, collecting the management fee."""

    asyncio.run(_invoke("harvest_yield", {"plan_id": plan_id}))


@app.command("stats")
def stats() -> None:
    """Print wallet balances, sustainability and activity counters."""

    asyncio.run(_stats())


async def _stats() -> None:
    engine = _engine()
    _echo(await engine.stats.collect())


@app.command("serve")
def serve(
    api: bool = typer.Option(True, "--api/--no-api", help="Also serve the debug API"),
) -> None:
    """Run the autonomous loop until interrupted."""

    asyncio.run(_serve(api=api))


async def _serve(*, api: bool) -> None:
    engine = _engine()
    settings = engine.ctx.settings
    handle = engine.start()
    try:
        if api:
            config = uvicorn.Config(
                create_app(engine),
                host=settings.dashboard_host,
                port=settings.dashboard_port,
                log_config=None,
            )
            LOG.info("Debug API listening", host=settings.dashboard_host, port=settings.dashboard_port)
            await uvicorn.Server(config).serve()
        else:
            await handle.wait()
    finally:
        handle.stop()
        await handle.wait()
        if engine.ctx.sink is not None:
            await engine.ctx.sink.drain()


if __name__ == "__main__":
    app()
