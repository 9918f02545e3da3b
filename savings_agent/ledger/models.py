"""Pydantic models for plans, transactions and the cost/revenue ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

from savings_agent.chain.contracts import Bucket


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SerializableModel(BaseModel):
    """Base-model that standardizes JSON helpers and validation."""

    model_config = {"extra": "forbid", "validate_assignment": True}

    def to_json(self, **kwargs: Any) -> str:
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_json(cls, raw: str) -> "SerializableModel":
        return cls.model_validate_json(raw)


class PlanStatus(str, Enum):
    created = "created"
    active = "active"
    rebalancing = "rebalancing"
    closed = "closed"


class TransactionType(str, Enum):
    deposit = "deposit"
    swap_buy = "swap_buy"
    swap_sell = "swap_sell"
    harvest = "harvest"
    rebalance = "rebalance"
    approve = "approve"


class CostType(str, Enum):
    compute = "compute"
    gas = "gas"


RiskLevel = Literal["low", "medium", "medium-high", "high"]
RevenueSource = Literal["management_fee", "x402"]


class Allocation(SerializableModel):
    """Target percentages per bucket; each in [0, 100]."""

    stable: float = Field(ge=0, le=100)
    real_estate_hedge: float = Field(ge=0, le=100)
    equity_hedge: float = Field(ge=0, le=100)
    bond_hedge: float = Field(ge=0, le=100)

    def get(self, bucket: Bucket) -> float:
        return getattr(self, bucket.value)


class SavingsPlan(SerializableModel):
    """One user goal with its target allocation and lifecycle state."""

    plan_id: str
    user_address: str
    goal: str
    timeline: str
    risk_level: RiskLevel
    allocation: Allocation
    deposit_amount_usdc: float = Field(ge=0)
    status: PlanStatus = PlanStatus.created
    created_at: datetime = Field(default_factory=utcnow)
    last_rebalanced_at: Optional[datetime] = None
    last_harvested_at: Optional[datetime] = None
    transactions: List[str] = Field(default_factory=list)


class TransactionRecord(SerializableModel):
    """An engine-initiated on-chain call; never mutated after it is recorded."""

    tx_hash: str
    plan_id: str
    type: TransactionType
    token_in: str
    token_out: str
    amount_in: str
    amount_out: str
    gas_cost_usd: float
    timestamp: datetime = Field(default_factory=utcnow)
    builder_code_included: bool = True


class CostEntry(SerializableModel):
    timestamp: datetime = Field(default_factory=utcnow)
    type: CostType
    action: str
    estimated_cost_usd: float = Field(ge=0)
    tx_hash: Optional[str] = None


class RevenueEntry(SerializableModel):
    timestamp: datetime = Field(default_factory=utcnow)
    source: RevenueSource
    amount_usdc: float = Field(ge=0)
    tx_hash: Optional[str] = None


__all__ = [
    "Allocation",
    "CostEntry",
    "CostType",
    "PlanStatus",
    "RevenueEntry",
    "RevenueSource",
    "RiskLevel",
    "SavingsPlan",
    "SerializableModel",
    "TransactionRecord",
    "TransactionType",
    "utcnow",
]
