"""Contract addresses, function signatures and calldata encoding."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from savings_agent.core.config import Settings

# ERC-20
APPROVE = "approve(address,uint256)"
BALANCE_OF = "balanceOf(address)"

# Savings vault
VAULT_DEPOSIT = "deposit(uint256)"
VAULT_DRIP = "drip(address)"
VAULT_HARVEST = "harvest(address)"
VAULT_DEPOSITS = "deposits(address)"
VAULT_PENDING_YIELD = "pendingYield(address)"

# Hedge router
ROUTER_BUY = "buyHedge(address,uint256)"
ROUTER_SELL = "sellHedge(address,uint256)"
ROUTER_PRICE = "getPrice(address)"

_SIGNATURE_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\((?P<args>[^()]*)\)$")


class Bucket(str, Enum):
    """Allocation buckets; values match the allocation field names."""

    STABLE = "stable"
    REAL_ESTATE = "real_estate_hedge"
    EQUITY = "equity_hedge"
    BOND = "bond_hedge"


HEDGE_BUCKETS: tuple[Bucket, ...] = (Bucket.REAL_ESTATE, Bucket.EQUITY, Bucket.BOND)

TOKEN_SYMBOLS: dict[Bucket, str] = {
    Bucket.STABLE: "USDC",
    Bucket.REAL_ESTATE: "RE-HEDGE",
    Bucket.EQUITY: "SP-HEDGE",
    Bucket.BOND: "BOND-HEDGE",
}


@dataclass(frozen=True, slots=True)
class ContractAddresses:
    usdc: str
    savings_vault: str
    hedge_router: str
    re_hedge: str
    sp_hedge: str
    bond_hedge: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractAddresses":
        return cls(
            usdc=settings.usdc_address,
            savings_vault=settings.savings_vault_address,
            hedge_router=settings.hedge_router_address,
            re_hedge=settings.re_hedge_address,
            sp_hedge=settings.sp_hedge_address,
            bond_hedge=settings.bond_hedge_address,
        )

    def hedge_token(self, bucket: Bucket) -> str:
        tokens = {
            Bucket.REAL_ESTATE: self.re_hedge,
            Bucket.EQUITY: self.sp_hedge,
            Bucket.BOND: self.bond_hedge,
        }
        try:
            return tokens[bucket]
        except KeyError:
            raise ValueError(f"{bucket.value} has no hedge token") from None


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split ``name(type,type)`` into its name and argument types."""

    match = _SIGNATURE_RE.match(signature.replace(" ", ""))
    if match is None:
        raise ValueError(f"Malformed function signature: {signature}")
    args = match.group("args")
    return match.group("name"), [arg for arg in args.split(",") if arg]


def selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature.replace(" ", ""))


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """ABI-encode a call to ``signature`` with ``args``."""

    _, types = parse_signature(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} arguments, got {len(args)}")
    return selector(signature) + encode(types, list(args))


def decode_result(returns: Sequence[str], data: bytes) -> Any:
    """Decode return data; a single return value is unwrapped."""

    values = decode(list(returns), data)
    if len(values) == 1:
        return values[0]
    return values


__all__ = [
    "APPROVE",
    "BALANCE_OF",
    "VAULT_DEPOSIT",
    "VAULT_DRIP",
    "VAULT_HARVEST",
    "VAULT_DEPOSITS",
    "VAULT_PENDING_YIELD",
    "ROUTER_BUY",
    "ROUTER_SELL",
    "ROUTER_PRICE",
    "Bucket",
    "HEDGE_BUCKETS",
    "TOKEN_SYMBOLS",
    "ContractAddresses",
    "decode_result",
    "encode_call",
    "parse_signature",
    "selector",
]
