"""Booking of mined calls into the transaction ledger."""

from __future__ import annotations

from savings_agent.chain.transactions import SentCall
from savings_agent.context import EngineContext
from savings_agent.ledger.models import TransactionRecord, TransactionType


def record_transaction(
    ctx: EngineContext,
    plan_id: str,
    sent: SentCall,
    *,
    tx_type: TransactionType,
    token_in: str,
    token_out: str,
    amount_in: str,
    amount_out: str,
) -> TransactionRecord:
    """Append a TransactionRecord and link its hash to the plan."""

    record = TransactionRecord(
        tx_hash=sent.tx_hash,
        plan_id=plan_id,
        type=tx_type,
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        amount_out=amount_out,
        gas_cost_usd=sent.gas_cost_usd,
        builder_code_included=True,
    )
    ctx.store.record_transaction(record)
    ctx.store.append_transaction_to_plan(plan_id, sent.tx_hash)
    return record


__all__ = ["record_transaction"]
