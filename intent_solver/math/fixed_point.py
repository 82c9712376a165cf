"""Exact integer math for prices, slippage, fees and amount formatting.

All token amounts are integers in the asset's smallest unit, scaled by the
asset's declared decimal count. Nothing here touches binary floating point.

Every division truncates toward negative infinity (floor). The ledger settles
with the same truncation rule, so rounding in either direction here would
shift the remainder onto a different party and make solver profit estimates
diverge from what is actually settled.
"""

from __future__ import annotations

import re

from intent_solver.constants import BPS_DENOMINATOR, PROTOCOL_FEE_BPS
from intent_solver.errors import DivisionByZero, InvalidSlippage, PreconditionFailure
from intent_solver.safe_int import S

__all__ = [
    "BPS_DENOMINATOR",
    "PROTOCOL_FEE_BPS",
    "calculate_price",
    "price_impact_bps",
    "meets_min_output",
    "apply_slippage",
    "apply_spread",
    "calculate_fee",
    "proportional_min_output",
    "bps_of",
    "format_amount",
    "parse_amount",
]

# Maximum decimals representable by a u256-sized amount (matches token metadata limits)
MAX_DECIMALS = 77

_AMOUNT_RE = re.compile(r"^(\d*)(?:\.(\d*))?$")


def _pow10(decimals: int) -> int:
    if not 0 <= decimals <= MAX_DECIMALS:
        raise PreconditionFailure(f"Token decimals out of range: {decimals}")
    return 10**decimals


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise PreconditionFailure(f"{name} must be non-negative, got {value}")


def _validate_bps(slippage_bps: int) -> None:
    if not 0 <= slippage_bps < BPS_DENOMINATOR:
        raise InvalidSlippage(
            f"Slippage must be in [0, {BPS_DENOMINATOR}) bps, got {slippage_bps}"
        )


def calculate_price(amount_in: int, amount_out: int, decimals_in: int, decimals_out: int) -> int:
    """Exchange rate of amount_out per unit of amount_in, in basis points.

    Computed as (amount_out * 10^decimals_in * 10000) / (amount_in * 10^decimals_out)
    with floor division, so an even 1:1 trade between equally scaled tokens
    returns 10000.

    Args:
        amount_in: Input amount in smallest units
        amount_out: Output amount in smallest units
        decimals_in: Input token decimals
        decimals_out: Output token decimals

    Returns:
        Price in basis points

    Raises:
        DivisionByZero: If amount_in is zero
    """
    _require_non_negative("amount_in", amount_in)
    _require_non_negative("amount_out", amount_out)
    if amount_in == 0:
        raise DivisionByZero("Price undefined for zero input amount")

    numerator = S(amount_out) * _pow10(decimals_in) * BPS_DENOMINATOR
    denominator = S(amount_in) * _pow10(decimals_out)
    return (numerator // denominator).value


def price_impact_bps(expected_output: int, actual_output: int) -> int:
    """Shortfall of actual_output versus expected_output, in basis points.

    ((expected - actual) * 10000) // expected. Negative when the actual output
    beats the expectation.

    Returns 0 when expected_output is zero. That is not a claim of zero impact:
    callers must reject a zero expectation before calling this.
    """
    if expected_output == 0:
        return 0
    return ((expected_output - actual_output) * BPS_DENOMINATOR) // expected_output


def meets_min_output(actual_output: int, min_output: int | None) -> bool:
    """True if actual_output satisfies the optional floor.

    An absent floor is always satisfied, including for a zero output.
    """
    if min_output is None:
        return True
    return actual_output >= min_output


def apply_slippage(amount: int, slippage_bps: int) -> int:
    """Reduce amount by slippage_bps, truncating.

    Raises:
        InvalidSlippage: If slippage_bps is negative or >= 10000
    """
    _validate_bps(slippage_bps)
    return (S(amount) * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR).value


def apply_spread(amount: int, spread_bps: int) -> int:
    """Reduce amount by the solver's spread. Same truncation rule as slippage."""
    return apply_slippage(amount, spread_bps)


def calculate_fee(amount: int, fee_bps: int = PROTOCOL_FEE_BPS) -> tuple[int, int]:
    """Split amount into (fee_amount, solver_receives).

    The fee is floored, so any remainder stays with the solver.
    """
    _validate_bps(fee_bps)
    fee_amount = (S(amount) * fee_bps // BPS_DENOMINATOR).value
    return fee_amount, amount - fee_amount


def proportional_min_output(total_min_output: int, fill_input: int, total_input: int) -> int:
    """Minimum output owed for a partial fill of fill_input out of total_input.

    Returns 0 when total_input is zero.
    """
    if total_input == 0:
        return 0
    return (S(total_min_output) * fill_input // total_input).value


def bps_of(part: int, whole: int) -> int:
    """part / whole in basis points, floored.

    Raises:
        DivisionByZero: If whole is zero
    """
    return (S(part) * BPS_DENOMINATOR // whole).value


def format_amount(amount: int, decimals: int, display_decimals: int = 4) -> str:
    """Render an integer amount as a decimal string.

    The fractional part is zero-padded to `decimals` digits and then cut to
    `display_decimals` digits. Digits beyond the cut are dropped, never rounded.

    Examples:
        format_amount(123456789, 8) -> "1.2345"
        format_amount(5, 8, 8) -> "0.00000005"
    """
    _require_non_negative("amount", amount)
    if display_decimals < 0:
        raise PreconditionFailure(f"display_decimals must be non-negative: {display_decimals}")

    whole, fraction = divmod(amount, _pow10(decimals))
    fraction_str = str(fraction).zfill(decimals) if decimals > 0 else ""
    shown = fraction_str[:display_decimals]
    if not shown:
        return str(whole)
    return f"{whole}.{shown}"


def parse_amount(text: str, decimals: int) -> int:
    """Parse a decimal string into an integer amount in smallest units.

    The fractional part is right-padded with zeros to `decimals` digits, or
    truncated if longer. Never rounds.

    Raises:
        ValueError: If text is not a plain non-negative decimal number
    """
    scale = _pow10(decimals)
    match = _AMOUNT_RE.match(text.strip())
    if match is None or not (match.group(1) or match.group(2)):
        raise ValueError(f"Invalid amount: '{text}'")

    whole = match.group(1) or "0"
    fraction = (match.group(2) or "").ljust(decimals, "0")[:decimals]
    return int(whole) * scale + (int(fraction) if fraction else 0)
