import pytest

from savings_agent.chain.contracts import APPROVE, ROUTER_BUY, ROUTER_SELL
from savings_agent.core.errors import ChainCallError
from savings_agent.engine import SavingsEngine
from savings_agent.ledger.models import PlanStatus, TransactionType

from .conftest import BOND_HEDGE, ONE_USDC, RE_HEDGE, ROUTER, FakeChain


def _bond_rally(chain: FakeChain) -> None:
    # bond 10% -> ~15.1% of a 1060 portfolio
    chain.prices[BOND_HEDGE] = 1_600_000


@pytest.mark.asyncio
async def test_no_drift_is_a_noop(engine: SavingsEngine, chain: FakeChain, funded_plan: str):
    sent_before = len(chain.sent)
    plan_before = engine.ctx.store.get(funded_plan)

    for _ in range(3):
        result = await engine.rebalance(funded_plan)
        assert result.rebalanced is False
        assert result.trades == []

    plan_after = engine.ctx.store.get(funded_plan)
    assert len(chain.sent) == sent_before
    assert plan_after.status == plan_before.status == PlanStatus.active
    assert plan_after.last_rebalanced_at is None


@pytest.mark.asyncio
async def test_drift_below_threshold_is_a_noop(engine: SavingsEngine, chain: FakeChain, funded_plan: str):
    chain.prices[BOND_HEDGE] = 1_400_000
    sent_before = len(chain.sent)

    result = await engine.rebalance(funded_plan)

    assert result.rebalanced is False
    assert 0 < result.max_drift < 5
    assert len(chain.sent) == sent_before


@pytest.mark.asyncio
async def test_rebalance_trades_back_toward_target(engine: SavingsEngine, chain: FakeChain, funded_plan: str):
    _bond_rally(chain)
    sent_before = len(chain.sent)

    result = await engine.rebalance(funded_plan)

    assert result.rebalanced is True
    assert result.max_drift >= 5
    assert len(result.trades) == 3
    assert result.trades[0].startswith("Bought 18.00 USDC of RE-HEDGE")
    assert result.trades[2].startswith("Sold 54.00 USDC of BOND-HEDGE")

    new_calls = chain.sent[sent_before:]
    assert [signature for _, signature, _ in new_calls] == [
        APPROVE, ROUTER_BUY, APPROVE, ROUTER_BUY, APPROVE, ROUTER_SELL,
    ]
    # sell approval is on the hedge token, sized in token units at the quoted price
    bond_approve = new_calls[4]
    assert bond_approve[0] == BOND_HEDGE
    assert bond_approve[2] == [ROUTER, 54 * ONE_USDC * 10**18 // 1_600_000]
    assert new_calls[1][2] == [RE_HEDGE, 18 * ONE_USDC]

    snapshot = await engine.check_portfolio(funded_plan)
    assert snapshot.drift.max_drift < 5

    plan = engine.ctx.store.get(funded_plan)
    assert plan.status == PlanStatus.active
    assert plan.last_rebalanced_at is not None

    rebalance_records = [
        record
        for record in engine.ctx.store.transactions_for_plan(funded_plan)
        if record.type == TransactionType.rebalance
    ]
    assert [(r.token_in, r.token_out) for r in rebalance_records] == [
        ("USDC", "RE-HEDGE"),
        ("USDC", "SP-HEDGE"),
        ("BOND-HEDGE", "USDC"),
    ]
    assert rebalance_records[0].amount_in == rebalance_records[0].amount_out == "18.00"
    assert rebalance_records[2].amount_in == "33.75"
    assert rebalance_records[2].amount_out == "54.00"


@pytest.mark.asyncio
async def test_second_rebalance_is_noop(engine: SavingsEngine, chain: FakeChain, funded_plan: str):
    _bond_rally(chain)

    first = await engine.rebalance(funded_plan)
    stamped = engine.ctx.store.get(funded_plan).last_rebalanced_at
    sent_after_first = len(chain.sent)
    second = await engine.rebalance(funded_plan)

    assert first.rebalanced is True
    assert second.rebalanced is False
    assert len(chain.sent) == sent_after_first
    assert engine.ctx.store.get(funded_plan).last_rebalanced_at == stamped


@pytest.mark.asyncio
async def test_failed_leg_propagates_and_keeps_completed_legs(
    engine: SavingsEngine, chain: FakeChain, funded_plan: str
):
    _bond_rally(chain)
    chain.fail_signatures.add(ROUTER_SELL)

    with pytest.raises(ChainCallError):
        await engine.rebalance(funded_plan)

    plan = engine.ctx.store.get(funded_plan)
    assert plan.status == PlanStatus.active
    assert plan.last_rebalanced_at is None
    buys = [
        record
        for record in engine.ctx.store.transactions_for_plan(funded_plan)
        if record.type == TransactionType.rebalance
    ]
    assert [record.token_out for record in buys] == ["RE-HEDGE", "SP-HEDGE"]


@pytest.mark.asyncio
async def test_rebalance_unknown_plan(engine: SavingsEngine):
    result = await engine.rebalance("plan_missing")

    assert result.rebalanced is False
    assert result.max_drift == 0
