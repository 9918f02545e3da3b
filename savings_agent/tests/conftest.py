from pathlib import Path
from typing import Any, Optional, Sequence

import pytest
import pytest_asyncio
from eth_abi import decode

from savings_agent.chain.attribution import strip_attribution
from savings_agent.chain.client import ChainClient, Receipt
from savings_agent.chain.contracts import (
    APPROVE,
    BALANCE_OF,
    ROUTER_BUY,
    ROUTER_PRICE,
    ROUTER_SELL,
    VAULT_DEPOSIT,
    VAULT_DEPOSITS,
    VAULT_DRIP,
    VAULT_HARVEST,
    VAULT_PENDING_YIELD,
    parse_signature,
    selector,
)
from savings_agent.chain.units import TOKEN_SCALE
from savings_agent.context import EngineContext
from savings_agent.core.config import Settings, get_settings
from savings_agent.core.errors import ChainCallError
from savings_agent.engine import SavingsEngine


AGENT = "0x" + "aa" * 20
USDC = "0x" + "01" * 20
VAULT = "0x" + "02" * 20
ROUTER = "0x" + "03" * 20
RE_HEDGE = "0x" + "04" * 20
SP_HEDGE = "0x" + "05" * 20
BOND_HEDGE = "0x" + "06" * 20

ONE_USDC = 10**6
GAS_USED = 50_000
GAS_PRICE = 10**9

WRITE_SIGNATURES = (APPROVE, VAULT_DEPOSIT, VAULT_DRIP, VAULT_HARVEST, ROUTER_BUY, ROUTER_SELL)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Settings:
    """Provide deterministic settings for tests."""

    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("ATTRIBUTION_CODE", "testcode")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("REBALANCE_INTERVAL_MINUTES", "60")
    monkeypatch.setenv("REBALANCE_THRESHOLD_PERCENT", "5")
    monkeypatch.setenv("MANAGEMENT_FEE_BPS", "200")
    monkeypatch.setenv("NATIVE_ASSET_PRICE_USD", "2500")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "1")
    monkeypatch.setenv("HTTP_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("HTTP_RETRY_BACKOFF_SECONDS", "0.1")
    monkeypatch.setenv("USDC_ADDRESS", USDC)
    monkeypatch.setenv("SAVINGS_VAULT_ADDRESS", VAULT)
    monkeypatch.setenv("HEDGE_ROUTER_ADDRESS", ROUTER)
    monkeypatch.setenv("RE_HEDGE_ADDRESS", RE_HEDGE)
    monkeypatch.setenv("SP_HEDGE_ADDRESS", SP_HEDGE)
    monkeypatch.setenv("BOND_HEDGE_ADDRESS", BOND_HEDGE)
    for key in ("AGENT_PRIVATE_KEY", "METRICS_SINK_URL", "METRICS_SINK_KEY"):
        monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    get_settings()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Return settings configured for the test."""

    return get_settings()


class FakeChain(ChainClient):
    """In-memory token, vault and router contracts that decode real attributed calldata."""

    def __init__(self, attribution_code: str) -> None:
        self._code = attribution_code
        self.balances: dict[tuple[str, str], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.prices: dict[str, int] = {RE_HEDGE: ONE_USDC, SP_HEDGE: ONE_USDC, BOND_HEDGE: ONE_USDC}
        self.deposits = 0
        self.pending_yield = 0
        self.drip_amount = 0
        self.native_wei = 10**18
        self.fail_signatures: set[str] = set()
        self.revert_signatures: set[str] = set()
        self.fail_reads = False
        self.sent: list[tuple[str, str, list[Any]]] = []
        self.raw_sent: list[bytes] = []
        self._selectors = {selector(sig): sig for sig in WRITE_SIGNATURES}
        self._reverted: set[str] = set()

    @property
    def address(self) -> str:
        return AGENT

    # Test helpers

    def fund_usdc(self, units: int) -> None:
        self._credit(USDC, AGENT, units)

    def balance(self, token: str, holder: str = AGENT) -> int:
        return self.balances.get((token.lower(), holder.lower()), 0)

    def sent_signatures(self) -> list[str]:
        return [signature for _, signature, _ in self.sent]

    # ChainClient

    async def read_call(
        self,
        contract: str,
        signature: str,
        args: Sequence[Any] = (),
        *,
        returns: Sequence[str] = ("uint256",),
    ) -> Any:
        if self.fail_reads:
            raise ChainCallError(f"{signature} on {contract} failed: rpc down")
        contract = contract.lower()
        if signature == BALANCE_OF:
            return self.balance(contract, args[0])
        if signature == VAULT_DEPOSITS:
            return self.deposits
        if signature == VAULT_PENDING_YIELD:
            return self.pending_yield
        if signature == ROUTER_PRICE:
            return self.prices[args[0].lower()]
        raise AssertionError(f"Unexpected read {signature}")

    async def send_transaction(self, contract: str, data: bytes) -> str:
        calldata = strip_attribution(data, self._code)
        signature = self._selectors[calldata[:4]]
        _, types = parse_signature(signature)
        args = [arg.lower() if isinstance(arg, str) else arg for arg in decode(types, calldata[4:])]
        if signature in self.fail_signatures:
            raise ChainCallError(f"Transaction to {contract} failed: execution reverted")
        reverted = signature in self.revert_signatures
        if not reverted:
            self._apply(contract.lower(), signature, args)
        self.sent.append((contract.lower(), signature, args))
        self.raw_sent.append(bytes(data))
        tx_hash = "0x" + f"{len(self.sent):064x}"
        if reverted:
            self._reverted.add(tx_hash)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        status = 0 if tx_hash in self._reverted else 1
        return Receipt(tx_hash=tx_hash, gas_used=GAS_USED, effective_gas_price=GAS_PRICE, status=status)

    async def native_balance(self, address: Optional[str] = None) -> int:
        if self.fail_reads:
            raise ChainCallError("eth_getBalance failed: rpc down")
        return self.native_wei

    # Contract behaviour

    def _apply(self, contract: str, signature: str, args: list[Any]) -> None:
        if signature == APPROVE:
            spender, amount = args
            self.allowances[(contract, AGENT, spender)] = amount
        elif signature == VAULT_DEPOSIT:
            (amount,) = args
            self._spend_allowance(USDC, VAULT, amount)
            self._debit(USDC, AGENT, amount)
            self.deposits += amount
        elif signature == VAULT_DRIP:
            self.pending_yield += self.drip_amount
        elif signature == VAULT_HARVEST:
            self._credit(USDC, AGENT, self.pending_yield)
            self.pending_yield = 0
        elif signature == ROUTER_BUY:
            token, amount = args
            self._spend_allowance(USDC, ROUTER, amount)
            self._debit(USDC, AGENT, amount)
            self._credit(token, AGENT, amount * TOKEN_SCALE // self.prices[token])
        elif signature == ROUTER_SELL:
            token, amount = args
            self._spend_allowance(token, ROUTER, amount)
            self._debit(token, AGENT, amount)
            self._credit(USDC, AGENT, amount * self.prices[token] // TOKEN_SCALE)
        else:
            raise AssertionError(f"Unexpected write {signature}")

    def _spend_allowance(self, token: str, spender: str, amount: int) -> None:
        key = (token, AGENT, spender)
        allowance = self.allowances.get(key, 0)
        if allowance < amount:
            raise ChainCallError("execution reverted: insufficient allowance")
        self.allowances[key] = allowance - amount

    def _credit(self, token: str, holder: str, amount: int) -> None:
        key = (token.lower(), holder.lower())
        self.balances[key] = self.balances.get(key, 0) + amount

    def _debit(self, token: str, holder: str, amount: int) -> None:
        key = (token.lower(), holder.lower())
        if self.balances.get(key, 0) < amount:
            raise ChainCallError("execution reverted: insufficient balance")
        self.balances[key] -= amount


@pytest.fixture
def chain(settings: Settings) -> FakeChain:
    return FakeChain(settings.attribution_code)


@pytest.fixture
def ctx(settings: Settings, chain: FakeChain) -> EngineContext:
    return EngineContext.create(settings, chain)


@pytest.fixture
def engine(ctx: EngineContext) -> SavingsEngine:
    return SavingsEngine(ctx)


@pytest_asyncio.fixture
async def funded_plan(engine: SavingsEngine, chain: FakeChain) -> str:
    """A 1000 USDC house plan (40/30/20/10) executed at unit prices, with 500 USDC spare in the wallet."""

    chain.fund_usdc(1_500 * ONE_USDC)
    plan = await engine.create_plan("Buy a house in 2-5 years", 1_000, AGENT)
    await engine.execute_trades(plan.plan_id)
    return plan.plan_id
