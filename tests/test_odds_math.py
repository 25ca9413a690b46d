"""
Tests for odds conversion and parlay pricing.
Run with: pytest tests/test_odds_math.py -v
"""

import pytest

from wagerloop.core.odds_math import (
    InvalidOddsFormat,
    american_to_decimal,
    combined_parlay_decimal,
    combined_parlay_odds,
    decimal_to_american,
    format_american,
    implied_probability,
    parse_american,
    potential_payout,
)


class TestParseAmerican:
    @pytest.mark.parametrize("raw,expected", [
        (-110, -110),
        ("-110", -110),
        ("+150", 150),
        (" 120 ", 120),
        (-200.0, -200),
    ])
    def test_accepts_ints_and_signed_strings(self, raw, expected):
        assert parse_american(raw) == expected

    @pytest.mark.parametrize("raw", [0, "0", "abc", "", "-110.5", -110.5, True, None, float("nan")])
    def test_rejects_unconvertible(self, raw):
        with pytest.raises(InvalidOddsFormat):
            parse_american(raw)

    def test_invalid_odds_is_value_error(self):
        with pytest.raises(ValueError):
            parse_american("N/A")


class TestConversion:
    def test_positive_american(self):
        assert american_to_decimal(150) == pytest.approx(2.5)
        assert american_to_decimal(100) == pytest.approx(2.0)

    def test_negative_american(self):
        assert american_to_decimal(-110) == pytest.approx(1.909090909)
        assert american_to_decimal(-200) == pytest.approx(1.5)

    def test_zero_american_raises(self):
        with pytest.raises(InvalidOddsFormat):
            american_to_decimal(0)

    def test_decimal_one_raises(self):
        with pytest.raises(InvalidOddsFormat):
            decimal_to_american(1.0)

    @pytest.mark.parametrize("bad", [0.5, float("inf"), "2.5"])
    def test_decimal_out_of_range_raises(self, bad):
        with pytest.raises(InvalidOddsFormat):
            decimal_to_american(bad)

    def test_even_money_is_plus_100(self):
        assert decimal_to_american(2.0) == 100

    @pytest.mark.parametrize("odds", [-200, 150, 100])
    def test_round_trip_exact(self, odds):
        assert decimal_to_american(american_to_decimal(odds)) == odds

    @pytest.mark.parametrize("odds", [-110, -105, -115, 120, 250])
    def test_round_trip_within_one(self, odds):
        assert abs(decimal_to_american(american_to_decimal(odds)) - odds) <= 1

    def test_rounds_half_up(self):
        # (2.125 - 1) * 100 = 112.5 → 113
        assert decimal_to_american(2.125) == 113


class TestFormatting:
    def test_positive_gets_plus(self):
        assert format_american(264) == "+264"

    def test_negative_unchanged(self):
        assert format_american(-110) == "-110"

    def test_string_input(self):
        assert format_american("150") == "+150"


class TestParlayPricing:
    def test_two_standard_legs(self):
        assert combined_parlay_odds([-110, -110]) == 264

    def test_single_leg_is_not_a_parlay(self):
        assert combined_parlay_odds([-110]) is None
        assert combined_parlay_decimal([-110]) is None

    def test_empty_is_not_a_parlay(self):
        assert combined_parlay_odds([]) is None

    def test_leg_order_irrelevant(self):
        assert combined_parlay_odds([150, -110, -200]) == combined_parlay_odds([-200, 150, -110])

    def test_bad_leg_fails_whole_parlay(self):
        with pytest.raises(InvalidOddsFormat):
            combined_parlay_odds([-110, "N/A"])

    def test_accepts_objects_with_odds(self):
        class Leg:
            def __init__(self, odds):
                self.odds = odds

        assert combined_parlay_odds([Leg("-110"), Leg("-110")]) == 264

    def test_decimal_product(self):
        assert combined_parlay_decimal([100, 100]) == pytest.approx(4.0)


class TestPayout:
    def test_implied_probability(self):
        assert implied_probability(-110) == pytest.approx(0.5238, abs=1e-4)
        assert implied_probability(150) == pytest.approx(0.4)

    def test_payout_includes_stake(self):
        assert potential_payout(100, 150) == pytest.approx(250.0)
        assert potential_payout(110, -110) == pytest.approx(210.0)

    def test_negative_stake_rejected(self):
        with pytest.raises(ValueError):
            potential_payout(-5, -110)
