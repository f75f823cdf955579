from __future__ import annotations
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

# Zeta fixed-point precisions
PLATFORM_PRECISION = 6   # prices / margin
POSITION_PRECISION = 3   # contract sizes

def _to_native(amount: float | str | Decimal, decimals: int) -> int:
    # go through str() so 101.00505 stays 101.00505 and not its binary neighbour
    d = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(d.quantize(Decimal(1), rounding=ROUND_HALF_UP))

def to_native_price(price: float) -> int:
    return _to_native(price, PLATFORM_PRECISION)

def to_native_lot_size(size: float | str | Decimal) -> int:
    return _to_native(size, POSITION_PRECISION)

def truncate_size(size: float, decimals: int = 1) -> Decimal:
    """Cut (not round) a decimal size, e.g. 80.19 -> 80.1."""
    step = Decimal(1).scaleb(-decimals)
    return Decimal(str(size)).quantize(step, rounding=ROUND_DOWN)
