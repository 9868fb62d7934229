"""Conversions between whole-token Decimals and integer base units."""

from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Union

TOKEN_DECIMALS = 18
ONE_TOKEN = 10 ** TOKEN_DECIMALS

# Enough digits to hold uint256 values exactly
_PRECISION = 80


def to_base_units(amount: Union[Decimal, int, str], decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a token amount to integer base units, truncating toward zero."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = Decimal(amount).scaleb(decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(amount: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Convert integer base units to an exact token Decimal."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(amount)).scaleb(-decimals)


def format_tokens(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Human-readable token amount for log and error messages."""
    return f"{from_base_units(amount, decimals).normalize():f}"
