import pytest

from savings_agent.engine import SavingsEngine
from savings_agent.portfolio.planner import parse_timeline, profile_goal

from .conftest import AGENT


def test_house_goal_profile():
    profile = profile_goal("Buy a house in 2-5 years")

    assert profile.years == 3.5
    assert profile.timeline == "2-5 years"
    assert profile.risk_level == "medium"
    assert profile.allocation.model_dump() == {
        "stable": 40,
        "real_estate_hedge": 30,
        "equity_hedge": 20,
        "bond_hedge": 10,
    }


@pytest.mark.parametrize(
    "goal, years",
    [
        ("Save for a car in 3 years", 3.0),
        ("Emergency fund over the next 1", 1.0),
        ("Short-term vacation fund", 1.0),
        ("Retirement nest egg", 15.0),
        ("Just saving", 5.0),
    ],
)
def test_parse_timeline(goal, years):
    assert parse_timeline(goal) == years


def test_growth_and_safety_tilts_stay_within_bounds():
    profile = profile_goal("Aggressive growth for retirement in 20 years")

    assert profile.risk_level == "high"
    assert profile.timeline == "10+ years"
    assert profile.allocation.equity_hedge == 60
    assert profile.allocation.stable == 10

    safe = profile_goal("Keep it safe, need it in 1 year")
    assert safe.allocation.bond_hedge == 20
    assert safe.allocation.equity_hedge == 0
    assert safe.risk_level == "low"


def test_range_timeline_resolves_to_midpoint_bucket():
    profile = profile_goal("buy a house in 3-5 years")

    assert profile.years == 4.0
    assert profile.timeline == "2-5 years"
    assert profile.risk_level == "medium"
    assert profile.allocation.model_dump() == {
        "stable": 40,
        "real_estate_hedge": 30,
        "equity_hedge": 20,
        "bond_hedge": 10,
    }


@pytest.mark.asyncio
async def test_create_plan_stores_profiled_goal(engine: SavingsEngine):
    plan = await engine.create_plan("buy a house in 3-5 years", 100, AGENT)

    stored = engine.ctx.store.get(plan.plan_id)
    assert stored is not None
    assert stored.deposit_amount_usdc == 100
    assert (stored.timeline, stored.risk_level) == ("2-5 years", "medium")
    assert stored.allocation.model_dump() == {
        "stable": 40,
        "real_estate_hedge": 30,
        "equity_hedge": 20,
        "bond_hedge": 10,
    }
    assert engine.ctx.costs.total_compute_cost() == pytest.approx(0.03)
