import pytest

from savings_agent.chain.contracts import VAULT_DRIP, VAULT_HARVEST
from savings_agent.engine import SavingsEngine
from savings_agent.ledger.models import TransactionType
from savings_agent.portfolio.harvest import management_fee_units

from .conftest import ONE_USDC, FakeChain


def test_fee_is_computed_in_integer_units():
    assert management_fee_units(2_000_000, 200) == 40_000
    assert management_fee_units(1_234_567, 200) == 24_691
    assert management_fee_units(999, 0) == 0


@pytest.mark.asyncio
async def test_dust_yield_is_not_harvested(engine: SavingsEngine, chain: FakeChain, funded_plan: str):
    chain.drip_amount = 999
    sent_before = len(chain.sent)
    gas_before = engine.ctx.costs.total_gas_cost()

    result = await engine.harvest_yield(funded_plan)

    assert result.harvested is False
    assert result.pending_yield == "0.000999"
    assert result.fee_collected == 0
    assert [signature for _, signature, _ in chain.sent[sent_before:]] == [VAULT_DRIP]
    assert engine.ctx.costs.total_revenue() == 0
    assert engine.ctx.costs.total_gas_cost() == pytest.approx(gas_before + 0.125)
    assert engine.ctx.store.get(funded_plan).last_harvested_at is None
    harvests = [
        record
        for record in engine.ctx.store.transactions_for_plan(funded_plan)
        if record.type == TransactionType.harvest
    ]
    assert harvests == []


@pytest.mark.asyncio
async def test_harvest_collects_fee_and_records_gross_yield(
    engine: SavingsEngine, chain: FakeChain, funded_plan: str
):
    chain.drip_amount = 2 * ONE_USDC
    sent_before = len(chain.sent)

    result = await engine.harvest_yield(funded_plan)

    assert result.harvested is True
    assert result.pending_yield == "2"
    assert result.fee_collected == pytest.approx(0.04)
    assert [signature for _, signature, _ in chain.sent[sent_before:]] == [VAULT_DRIP, VAULT_HARVEST]

    revenue = engine.ctx.costs.recent_revenue()
    assert len(revenue) == 1
    assert revenue[0].source == "management_fee"
    assert revenue[0].tx_hash == result.tx_hash

    record = engine.ctx.store.transactions_for_plan(funded_plan)[-1]
    assert record.type == TransactionType.harvest
    assert (record.token_in, record.token_out) == ("Vault Yield", "USDC")
    assert record.amount_in == record.amount_out == "2"
    assert engine.ctx.store.get(funded_plan).last_harvested_at is not None


@pytest.mark.asyncio
async def test_harvest_unknown_plan_makes_no_calls(engine: SavingsEngine, chain: FakeChain):
    result = await engine.harvest_yield("plan_missing")

    assert result.harvested is False
    assert result.pending_yield == "0"
    assert chain.sent == []
