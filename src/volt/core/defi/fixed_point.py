"""
Integer fixed-point helpers for basis-point accounting.

All ledger arithmetic is done on integers in reserve base units. Division
always floors unless the caller explicitly asks to round up, so payouts never
exceed what the formulas quote.
"""

from __future__ import annotations

from ..constants import BASIS_POINTS, SECONDS_PER_DAY, SECONDS_PER_YEAR


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up (for charging users)
                  If False, round down (for paying users)

    Returns:
        Result of (a * b) / denominator

    Raises:
        ValueError: If denominator is zero or an operand is negative
    """
    if denominator == 0:
        raise ValueError("Division by zero")
    if a < 0 or b < 0 or denominator < 0:
        raise ValueError("Operands must be non-negative")

    result = a * b

    if round_up:
        return (result + denominator - 1) // denominator
    return result // denominator


def apply_bp(amount: int, bp: int) -> int:
    """Return ``amount * bp / 10_000``, floored."""
    return mul_div(amount, bp, BASIS_POINTS)


def simple_interest(principal: int, rate_bp: int, elapsed_seconds: int) -> int:
    """
    Non-compounding interest on ``principal`` at an annual ``rate_bp``.

    interest = principal * rate_bp * elapsed / (10_000 * SECONDS_PER_YEAR)
    """
    if principal <= 0 or rate_bp <= 0 or elapsed_seconds <= 0:
        return 0
    return (principal * rate_bp * elapsed_seconds) // (BASIS_POINTS * SECONDS_PER_YEAR)


def days_to_seconds(days: int) -> int:
    return days * SECONDS_PER_DAY
