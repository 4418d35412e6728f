"""
Monero amounts in atomic units (piconero).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Annotated

from pydantic import Field

ATOMIC_UNITS_PER_XMR = 10**12
XMR_DECIMALS = 12

# Exact, non-negative amount in atomic units
Amount = Annotated[int, Field(ge=0)]
# Amounts that must carry value (payment outputs, fees of constructed txs)
PositiveAmount = Annotated[int, Field(gt=0)]


def to_xmr(atomic: int) -> Decimal:
    """Convert atomic units to XMR"""
    return Decimal(atomic) / Decimal(ATOMIC_UNITS_PER_XMR)


def from_xmr(value: Decimal | str | int) -> int:
    """
    Convert an XMR value to atomic units without losing precision.

    Args:
        value: Amount in XMR (Decimal, decimal string or int)

    Returns:
        Amount in atomic units

    Raises:
        ValueError: If the value is negative, not a number or has more than
            12 decimal places
    """
    try:
        dec = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid XMR amount: {value!r}") from e

    if not dec.is_finite():
        raise ValueError(f"Invalid XMR amount: {value!r}")
    if dec < 0:
        raise ValueError(f"Amount must be non-negative: {value}")

    atomic = dec * ATOMIC_UNITS_PER_XMR
    if atomic != atomic.to_integral_value():
        raise ValueError(f"Amount {value} has more than {XMR_DECIMALS} decimal places")
    return int(atomic)


def format_xmr(atomic: int) -> str:
    """Format atomic units as an XMR string with full precision"""
    return f"{to_xmr(atomic):.{XMR_DECIMALS}f}"
