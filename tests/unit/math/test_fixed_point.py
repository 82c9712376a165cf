"""Tests for exact integer price, slippage, fee and formatting math."""

import pytest

from intent_solver.errors import DivisionByZero, InvalidSlippage, PreconditionFailure
from intent_solver.math import (
    apply_slippage,
    apply_spread,
    bps_of,
    calculate_fee,
    calculate_price,
    format_amount,
    meets_min_output,
    parse_amount,
    price_impact_bps,
    proportional_min_output,
)


class TestCalculatePrice:
    """price = amount_out * 10^dec_in * 10000 // (amount_in * 10^dec_out)."""

    def test_one_to_one_same_decimals(self):
        assert calculate_price(100_000_000, 100_000_000, 8, 8) == 10_000

    def test_cross_decimals(self):
        """1 tMOVE (8 dec) for 0.036 USDC (6 dec) is 360 bps."""
        assert calculate_price(100_000_000, 36_000, 8, 6) == 360

    def test_truncates(self):
        # 1 / 3 = 0.3333 -> 3333 bps
        assert calculate_price(3, 1, 0, 0) == 3333

    def test_zero_input_raises(self):
        with pytest.raises(DivisionByZero):
            calculate_price(0, 100, 8, 8)

    def test_deterministic(self):
        """Repeated calls are bit-for-bit identical (no floats involved)."""
        args = (123_456_789_012, 987_654_321, 8, 6)
        results = {calculate_price(*args) for _ in range(100)}
        assert len(results) == 1

    def test_large_amounts_do_not_lose_precision(self):
        amount = 2**64 - 1
        assert calculate_price(amount, amount, 18, 18) == 10_000

    def test_negative_amount_rejected(self):
        with pytest.raises(PreconditionFailure):
            calculate_price(-1, 5, 8, 8)


class TestPriceImpact:
    def test_shortfall(self):
        assert price_impact_bps(1_000_000, 990_000) == 100

    def test_floor_division(self):
        # 1 / 3 of 10000 = 3333.33 -> 3333
        assert price_impact_bps(3, 2) == 3333

    def test_better_than_expected_is_negative(self):
        assert price_impact_bps(1_000, 1_010) == -100

    def test_zero_expected_returns_zero(self):
        """Zero expectation returns 0; callers must reject it upstream."""
        assert price_impact_bps(0, 12345) == 0


class TestMeetsMinOutput:
    def test_absent_floor_always_true(self):
        assert meets_min_output(0, None)
        assert meets_min_output(10**18, None)

    def test_at_floor(self):
        assert meets_min_output(100, 100)

    def test_below_floor(self):
        assert not meets_min_output(99, 100)


class TestSlippageAndSpread:
    def test_apply_slippage(self):
        assert apply_slippage(1_000_000, 50) == 995_000

    def test_apply_slippage_truncates(self):
        # 999 * 9950 / 10000 = 994.005 -> 994
        assert apply_slippage(999, 50) == 994

    def test_full_slippage_rejected(self):
        with pytest.raises(InvalidSlippage):
            apply_slippage(1_000, 10_000)

    def test_negative_slippage_rejected(self):
        with pytest.raises(InvalidSlippage):
            apply_slippage(1_000, -1)

    def test_spread_uses_same_rule(self):
        assert apply_spread(999, 50) == apply_slippage(999, 50)


class TestFeesAndRatios:
    def test_calculate_fee_default(self):
        """Protocol fee is 30 bps, floored; remainder stays with the solver."""
        assert calculate_fee(1_000_000) == (3_000, 997_000)
        assert calculate_fee(333) == (0, 333)

    def test_proportional_min_output(self):
        assert proportional_min_output(3_000_000, 25, 100) == 750_000
        assert proportional_min_output(10, 1, 3) == 3

    def test_proportional_min_output_zero_total(self):
        assert proportional_min_output(3_000_000, 0, 0) == 0

    def test_bps_of(self):
        assert bps_of(5, 1_000) == 50
        assert bps_of(-5, 1_000) == -50

    def test_bps_of_zero_whole(self):
        with pytest.raises(DivisionByZero):
            bps_of(5, 0)


class TestFormatAmount:
    def test_default_display(self):
        assert format_amount(123_456_789, 8) == "1.2345"

    def test_truncates_never_rounds(self):
        assert format_amount(199_999_999, 8, 2) == "1.99"

    def test_small_amount_zero_padded(self):
        assert format_amount(5, 8, 8) == "0.00000005"

    def test_zero_display_decimals(self):
        assert format_amount(199_999_999, 8, 0) == "1"

    def test_zero_decimals_token(self):
        assert format_amount(42, 0) == "42"


class TestParseAmount:
    def test_whole_and_fraction(self):
        assert parse_amount("1.5", 8) == 150_000_000

    def test_fraction_truncated(self):
        assert parse_amount("0.123456789", 8) == 12_345_678

    def test_no_whole_part(self):
        assert parse_amount(".5", 2) == 50

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3", "-1", "."])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_amount(text, 8)

    @pytest.mark.parametrize(
        "amount,decimals",
        [(0, 8), (1, 8), (123_456_789, 8), (2**64 - 1, 8), (10**18, 18), (7, 0)],
    )
    def test_round_trip_at_full_precision(self, amount, decimals):
        assert parse_amount(format_amount(amount, decimals, decimals), decimals) == amount

    def test_lossy_round_trip_truncates(self):
        """Below full precision the loss is truncation, never rounding."""
        shown = format_amount(199_999_999, 8, 4)
        assert parse_amount(shown, 8) == 199_990_000
