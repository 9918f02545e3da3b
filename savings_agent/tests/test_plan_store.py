from savings_agent.core.config import Settings
from savings_agent.ledger.models import Allocation, PlanStatus, TransactionRecord, TransactionType, utcnow
from savings_agent.ledger.plan_store import PlanStore


ALLOCATION = Allocation(stable=40, real_estate_hedge=30, equity_hedge=20, bond_hedge=10)


def _create(store: PlanStore, deposit: float = 100.0):
    return store.create(
        user_address="0xuser",
        goal="Buy a house in 2-5 years",
        timeline="2-5 years",
        risk_level="medium",
        allocation=ALLOCATION,
        deposit_amount_usdc=deposit,
    )


def test_create_and_reload_from_disk(settings: Settings):
    store = PlanStore(settings.data_dir)
    plan = _create(store)

    assert plan.plan_id.startswith("plan_")
    assert plan.status == PlanStatus.created

    reloaded = PlanStore(settings.data_dir)
    assert [p.plan_id for p in reloaded.get_all()] == [plan.plan_id]
    assert reloaded.get(plan.plan_id).allocation == ALLOCATION


def test_reads_return_copies(settings: Settings):
    store = PlanStore(settings.data_dir)
    plan = _create(store)

    copy = store.get(plan.plan_id)
    copy.status = PlanStatus.closed
    copy.transactions.append("0xdead")

    stored = store.get(plan.plan_id)
    assert stored.status == PlanStatus.created
    assert stored.transactions == []


def test_active_plans_exclude_rebalancing_and_closed(settings: Settings):
    store = PlanStore(settings.data_dir)
    created = _create(store)
    active = _create(store)
    busy = _create(store)
    closed = _create(store)
    store.update(active.plan_id, status=PlanStatus.active)
    store.update(busy.plan_id, status=PlanStatus.rebalancing)
    store.update(closed.plan_id, status=PlanStatus.closed)

    assert {p.plan_id for p in store.get_active()} == {created.plan_id, active.plan_id}


def test_update_unknown_plan_is_noop(settings: Settings):
    store = PlanStore(settings.data_dir)
    _create(store)

    store.update("plan_missing", status=PlanStatus.closed)
    store.append_transaction_to_plan("plan_missing", "0x1")

    assert store.get("plan_missing") is None
    assert all(p.status == PlanStatus.created for p in store.get_all())


def test_update_persists_timestamps(settings: Settings):
    store = PlanStore(settings.data_dir)
    plan = _create(store)
    stamp = utcnow()

    store.update(plan.plan_id, status=PlanStatus.active, last_rebalanced_at=stamp)

    reloaded = PlanStore(settings.data_dir).get(plan.plan_id)
    assert reloaded.status == PlanStatus.active
    assert reloaded.last_rebalanced_at == stamp


def test_transaction_log_appends_and_limits(settings: Settings):
    store = PlanStore(settings.data_dir)
    plan = _create(store)
    for index in range(60):
        store.record_transaction(
            TransactionRecord(
                tx_hash=f"0x{index:02x}",
                plan_id=plan.plan_id,
                type=TransactionType.deposit,
                token_in="USDC",
                token_out="Vault",
                amount_in="1",
                amount_out="1",
                gas_cost_usd=0.01,
            )
        )

    recent = store.recent_transactions()
    assert len(recent) == 50
    assert recent[-1].tx_hash == "0x3b"
    assert store.transaction_count() == 60
    assert PlanStore(settings.data_dir).transaction_count() == 60
    assert len(store.transactions_for_plan(plan.plan_id)) == 60


def test_corrupt_state_file_resets_to_empty(settings: Settings):
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / "plans.json").write_text("{not json")

    store = PlanStore(settings.data_dir)

    assert store.get_all() == []
    plan = _create(store)
    assert PlanStore(settings.data_dir).get(plan.plan_id) is not None
