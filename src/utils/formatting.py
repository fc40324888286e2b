from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext

# Enough significant digits for any 256-bit amount at any reasonable scale.
_PRECISION = 120


def to_base_units(raw: str, decimals: int = 0) -> int:
    """Parse a token amount into integer base units, e.g. "1.5" with 18 decimals."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            value = Decimal(raw.strip()) * (Decimal(10) ** decimals)
        except InvalidOperation as err:
            raise ValueError(f"invalid amount {raw!r}") from err
        if not value.is_finite():
            raise ValueError(f"invalid amount {raw!r}")
        if value < 0:
            raise ValueError(f"amount must be >= 0, got {raw!r}")
        if value != value.to_integral_value():
            raise ValueError(f"amount {raw!r} is finer than {decimals} decimals")
        return int(value)


def from_base_units(value: int, decimals: int = 0) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(value) / (Decimal(10) ** decimals)


def format_decimal(value: Decimal) -> str:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        quantized = value.normalize()
        # Avoid scientific notation for integers.
        if quantized == quantized.to_integral():
            return f"{quantized:.0f}"
        return format(quantized, "f")


def format_amount(value: int, decimals: int = 0) -> str:
    return format_decimal(from_base_units(value, decimals))
