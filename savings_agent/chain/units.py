"""Conversions between human amounts and integer smallest units."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

USDC_DECIMALS = 6
HEDGE_DECIMALS = 18
TOKEN_SCALE = 10**HEDGE_DECIMALS
WEI_PER_NATIVE = 10**18


def to_base_units(amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert ``amount`` to integer smallest units, truncating extra precision."""

    scaled = Decimal(str(amount)).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def format_units(value: int, decimals: int) -> str:
    """Render an integer smallest-unit amount as a plain decimal string."""

    rendered = format(Decimal(value).scaleb(-decimals).normalize(), "f")
    return rendered


def to_float(value: int, decimals: int) -> float:
    return float(Decimal(value).scaleb(-decimals))


__all__ = [
    "USDC_DECIMALS",
    "HEDGE_DECIMALS",
    "TOKEN_SCALE",
    "WEI_PER_NATIVE",
    "to_base_units",
    "format_units",
    "to_float",
]
