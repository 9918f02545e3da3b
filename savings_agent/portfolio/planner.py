"""Heuristic goal classifier producing a timeline, risk level and target allocation."""

from __future__ import annotations

import re
from dataclasses import dataclass

from savings_agent.ledger.models import Allocation, RiskLevel

DEFAULT_YEARS = 5.0

_TIMELINE_PATTERNS = (
    re.compile(r"(\d+)\s*-\s*(\d+)\s*years?", re.IGNORECASE),
    re.compile(r"(\d+)\s*years?", re.IGNORECASE),
    re.compile(r"next\s*(\d+)", re.IGNORECASE),
)
_KEYWORD_YEARS = (
    (re.compile(r"short.?term|soon|immedia", re.IGNORECASE), 1.0),
    (re.compile(r"medium.?term", re.IGNORECASE), 5.0),
    (re.compile(r"long.?term|retire", re.IGNORECASE), 15.0),
)

_HOUSING = re.compile(r"house|home|real\s*estate|property|apartment|condo", re.IGNORECASE)
_SAFETY = re.compile(r"safe|conservat|low\s*risk|preserv", re.IGNORECASE)
_GROWTH = re.compile(r"grow|aggress|high\s*return|maxim", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class GoalProfile:
    years: float
    timeline: str
    risk_level: RiskLevel
    allocation: Allocation


def parse_timeline(goal: str) -> float:
    """Estimate the goal horizon in years; ranges resolve to their midpoint."""

    for pattern in _TIMELINE_PATTERNS:
        match = pattern.search(goal)
        if match is None:
            continue
        if match.lastindex and match.lastindex >= 2:
            return (int(match.group(1)) + int(match.group(2))) / 2
        return float(int(match.group(1)))

    for pattern, years in _KEYWORD_YEARS:
        if pattern.search(goal):
            return years
    return DEFAULT_YEARS


def risk_level_for(years: float) -> RiskLevel:
    if years < 2:
        return "low"
    if years < 5:
        return "medium"
    if years < 10:
        return "medium-high"
    return "high"


def timeline_bucket(years: float) -> str:
    if years < 2:
        return "< 2 years"
    if years < 5:
        return "2-5 years"
    if years < 10:
        return "5-10 years"
    return "10+ years"


def base_allocation(years: float) -> dict[str, float]:
    if years < 2:
        return {"stable": 70, "real_estate_hedge": 10, "equity_hedge": 10, "bond_hedge": 10}
    if years < 5:
        return {"stable": 50, "real_estate_hedge": 20, "equity_hedge": 20, "bond_hedge": 10}
    if years < 10:
        return {"stable": 30, "real_estate_hedge": 25, "equity_hedge": 35, "bond_hedge": 10}
    return {"stable": 20, "real_estate_hedge": 20, "equity_hedge": 50, "bond_hedge": 10}


def compute_allocation(years: float, goal: str) -> Allocation:
    """Start from the horizon's base table and tilt it by goal keywords."""

    weights = base_allocation(years)
    if _HOUSING.search(goal):
        weights["real_estate_hedge"] += 10
        weights["stable"] -= 10
    if _SAFETY.search(goal):
        weights["bond_hedge"] += 10
        weights["equity_hedge"] -= 10
    if _GROWTH.search(goal):
        weights["equity_hedge"] += 10
        weights["stable"] -= 10

    clamped = {name: max(0, min(100, value)) for name, value in weights.items()}
    return Allocation(**clamped)


def profile_goal(goal: str) -> GoalProfile:
    years = parse_timeline(goal)
    return GoalProfile(
        years=years,
        timeline=timeline_bucket(years),
        risk_level=risk_level_for(years),
        allocation=compute_allocation(years, goal),
    )


__all__ = [
    "GoalProfile",
    "base_allocation",
    "compute_allocation",
    "parse_timeline",
    "profile_goal",
    "risk_level_for",
    "timeline_bucket",
]
