"""Deterministic quantity sizing utilities."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal


def quantize_down(value: float, precision: int) -> float:
    """Round toward zero at fixed precision to avoid oversizing fractional orders."""
    if precision <= 0:
        quantum = Decimal("1")
    else:
        quantum = Decimal("1").scaleb(-precision)
    decimal_value = Decimal(str(max(value, 0.0)))
    quantized = decimal_value.quantize(quantum, rounding=ROUND_DOWN)
    return float(quantized)


def notional_to_quantity(notional: float, price: float, precision: int) -> float:
    """Convert a quote-currency size into a base quantity; zero when unpriced."""
    if price <= 0 or notional <= 0:
        return 0.0
    return quantize_down(notional / price, precision)


def clamp_unit(value: float) -> float:
    """Clamp a score into the inclusive [0, 1] range."""
    return max(0.0, min(1.0, float(value)))
