"""Plan lifecycle store and the append-only transaction ledger."""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import Any, Optional

from savings_agent.core.logging import get_logger
from savings_agent.ledger.models import Allocation, PlanStatus, RiskLevel, SavingsPlan, TransactionRecord
from savings_agent.storage.json_store import JsonCollection


LOG = get_logger(__name__)

ACTIVE_STATUSES = frozenset({PlanStatus.active, PlanStatus.created})


def new_plan_id() -> str:
    return f"plan_{secrets.token_hex(6)}"


class PlanStore:
    """Sole owner of plan records and the transaction log.

    Every mutation rewrites the affected collection before returning. Reads
    hand out copies; status and timestamps change only through ``update``.
    """

    def __init__(self, data_dir: Path) -> None:
        self._plans_file = JsonCollection(data_dir / "plans.json", SavingsPlan)
        self._tx_file = JsonCollection(data_dir / "transactions.json", TransactionRecord)
        self._plans: list[SavingsPlan] = self._plans_file.load()
        self._transactions: list[TransactionRecord] = self._tx_file.load()

    # Plans

    def create(
        self,
        *,
        user_address: str,
        goal: str,
        timeline: str,
        risk_level: RiskLevel,
        allocation: Allocation,
        deposit_amount_usdc: float,
    ) -> SavingsPlan:
        plan = SavingsPlan(
            plan_id=new_plan_id(),
            user_address=user_address,
            goal=goal,
            timeline=timeline,
            risk_level=risk_level,
            allocation=allocation,
            deposit_amount_usdc=deposit_amount_usdc,
            status=PlanStatus.created,
        )
        self._plans.append(plan)
        self._plans_file.save(self._plans)
        LOG.info("Plan created", plan_id=plan.plan_id, timeline=timeline, risk_level=risk_level)
        return plan.model_copy(deep=True)

    def get(self, plan_id: str) -> Optional[SavingsPlan]:
        plan = self._find(plan_id)
        return plan.model_copy(deep=True) if plan else None

    def get_all(self) -> list[SavingsPlan]:
        return [plan.model_copy(deep=True) for plan in self._plans]

    def get_active(self) -> list[SavingsPlan]:
        return [plan.model_copy(deep=True) for plan in self._plans if plan.status in ACTIVE_STATUSES]

    def update(self, plan_id: str, **fields: Any) -> None:
        """Apply ``fields`` to the plan; unknown ids are ignored."""

        index = self._index(plan_id)
        if index is None:
            LOG.debug("Ignoring update for unknown plan", plan_id=plan_id)
            return
        current = self._plans[index]
        self._plans[index] = SavingsPlan.model_validate({**current.model_dump(), **fields})
        self._plans_file.save(self._plans)

    def append_transaction_to_plan(self, plan_id: str, tx_hash: str) -> None:
        plan = self._find(plan_id)
        if plan is None:
            return
        plan.transactions.append(tx_hash)
        self._plans_file.save(self._plans)

    # Transactions

    def record_transaction(self, record: TransactionRecord) -> None:
        self._transactions.append(record)
        self._tx_file.save(self._transactions)

    def recent_transactions(self, limit: int = 50) -> list[TransactionRecord]:
        if limit <= 0:
            return []
        return [record.model_copy() for record in self._transactions[-limit:]]

    def transactions_for_plan(self, plan_id: str) -> list[TransactionRecord]:
        return [record.model_copy() for record in self._transactions if record.plan_id == plan_id]

    def transaction_count(self) -> int:
        return len(self._transactions)

    def _index(self, plan_id: str) -> Optional[int]:
        for index, plan in enumerate(self._plans):
            if plan.plan_id == plan_id:
                return index
        return None

    def _find(self, plan_id: str) -> Optional[SavingsPlan]:
        index = self._index(plan_id)
        return self._plans[index] if index is not None else None


__all__ = ["PlanStore", "ACTIVE_STATUSES", "new_plan_id"]
