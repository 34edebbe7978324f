"""
Tests for core/odds_math.py

Run with: pytest tests/test_odds_math.py -v
"""

from decimal import Decimal

import pytest

from sportsbook.core.errors import InvalidInput
from sportsbook.core.odds_math import (
    american_to_decimal,
    cash_out_value,
    clamp_dead_zone,
    combine_odds,
    decimal_to_american,
    is_dead_zone,
    payout,
    to_money,
)


class TestPayout:
    """Total return of a winning wager."""

    def test_positive_odds(self):
        assert payout(100, 150) == Decimal("250.00")

    def test_negative_odds_rounds_half_up(self):
        assert payout(100, -150) == Decimal("166.67")

    def test_even_money_boundary(self):
        assert payout(50, 101) == Decimal("100.50")
        assert payout(101, -101) == Decimal("201.00")

    @pytest.mark.parametrize("stake", [Decimal("0.01"), 1, 10.5, "25.00", 1000])
    @pytest.mark.parametrize("odds", [-10000, -500, -110, -101, 101, 120, 450, 5000])
    def test_payout_never_below_stake(self, stake, odds):
        assert payout(stake, odds) >= to_money(stake)

    @pytest.mark.parametrize("odds", [0, 100, -100, 50, -1, 1])
    def test_rejects_dead_zone_odds(self, odds):
        with pytest.raises(InvalidInput):
            payout(100, odds)

    @pytest.mark.parametrize("stake", [0, -5, "0.00"])
    def test_rejects_non_positive_stake(self, stake):
        with pytest.raises(InvalidInput):
            payout(stake, 150)

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            payout(10, 0)


class TestConversion:
    """American ↔ decimal odds."""

    def test_american_to_decimal(self):
        assert american_to_decimal(150) == pytest.approx(2.5)
        assert american_to_decimal(-200) == pytest.approx(1.5)
        assert american_to_decimal(-110) == pytest.approx(1.909, abs=0.001)

    def test_decimal_to_american(self):
        assert decimal_to_american(3.75) == 275
        assert decimal_to_american(2.0) == 100
        assert decimal_to_american(1.5) == -200

    @pytest.mark.parametrize("bad", [1.0, 0.5, -2.0])
    def test_decimal_at_or_below_one_rejected(self, bad):
        with pytest.raises(InvalidInput):
            decimal_to_american(bad)

    @pytest.mark.parametrize("odds", [-1000, -250, -110, -101, 101, 110, 150, 275, 900])
    def test_round_trip(self, odds):
        assert decimal_to_american(american_to_decimal(odds)) == odds


class TestCombineOdds:
    """Parlay pricing."""

    def test_two_leg_scenario(self):
        assert combine_odds([150, -200]) == 275

    def test_parlay_payout_scenario(self):
        # $20 at +275 returns the stake plus 55.00 profit
        assert payout(20, combine_odds([150, -200])) == Decimal("75.00")

    @pytest.mark.parametrize("odds", [-300, -110, 101, 250])
    def test_single_leg_identity(self, odds):
        assert combine_odds([odds]) == odds

    def test_order_independent(self):
        legs = [-110, 150, -200, 300]
        assert combine_odds(legs) == combine_odds(list(reversed(legs)))
        assert combine_odds(legs) == combine_odds([300, -110, -200, 150])

    def test_empty_rejected(self):
        with pytest.raises(InvalidInput):
            combine_odds([])

    def test_invalid_leg_rejected(self):
        with pytest.raises(InvalidInput):
            combine_odds([150, 100])

    def test_near_even_product_clamped(self):
        # 1.4132² ≈ 1.9972 → -100 before the clamp
        assert combine_odds([-242, -242]) == -101


class TestDeadZone:
    """The (-101, 101) band and the clamp."""

    @pytest.mark.parametrize("odds,expected", [
        (0, True), (100, True), (-100, True), (101, False), (-101, False), (-140, False),
    ])
    def test_is_dead_zone(self, odds, expected):
        assert is_dead_zone(odds) is expected

    def test_positive_raw_value_lands_on_plus_101(self):
        assert clamp_dead_zone(5) == 101
        assert clamp_dead_zone(100) == 101

    def test_negative_raw_value_keeps_favourite_side(self):
        # -103 moved up by 8 stays a favourite
        assert clamp_dead_zone(-103 + 8) == -101
        assert clamp_dead_zone(-50) == -101

    def test_zero_counts_as_negative(self):
        assert clamp_dead_zone(0) == -101

    def test_outside_values_untouched(self):
        assert clamp_dead_zone(-140) == -140
        assert clamp_dead_zone(101) == 101
        assert clamp_dead_zone(-101) == -101


class TestCashOutValue:
    """Randomized early-settlement offers."""

    class _Fixed:
        def __init__(self, value):
            self.value = value

        def random(self):
            return self.value

    def test_lower_bound(self):
        # stake + 0.3 × profit
        assert cash_out_value(100, 250, "pending", self._Fixed(0.0)) == Decimal("145.00")

    def test_midpoint(self):
        assert cash_out_value(100, 250, "pending", self._Fixed(0.5)) == Decimal("182.50")

    def test_within_bounds_with_real_randomness(self):
        for _ in range(200):
            value = cash_out_value(Decimal("20.00"), Decimal("75.00"), "pending")
            assert Decimal("36.50") <= value <= Decimal("64.00")

    @pytest.mark.parametrize("status", ["won", "lost", "cashed_out"])
    def test_non_pending_is_zero(self, status):
        assert cash_out_value(100, 250, status, self._Fixed(0.5)) == Decimal("0.00")
