# =============================================================================
# UNIT TESTS - BONDING CURVE PRICING
# =============================================================================

import pytest

from engine.curve import (
    CurvePricingEngine,
    floor_units,
    implied_probability,
    price,
    round_trip_value,
    tokens_out,
    usdc_out,
    validate_curve,
    win_payout,
)
from engine.errors import InvalidConfigurationError
from engine.models import CurveParameters


def _is_floored(value: float, decimals: int) -> bool:
    scaled = value * 10 ** decimals
    return abs(scaled - round(scaled)) < 1e-6


class TestPrice:
    """Tests for marginal price at a given supply."""

    def test_zero_supply_returns_k(self, power_curve):
        """Empty curve quotes the coefficient itself."""
        assert price(0, power_curve) == pytest.approx(0.0001)

    def test_negative_supply_returns_floor(self, power_curve):
        """Negative supply is treated like an empty curve."""
        assert price(-5, power_curve) == pytest.approx(0.0001)

    def test_power_curve_value(self, power_curve):
        """k * s^n at s=100 is 1.0."""
        assert price(100, power_curve) == pytest.approx(1.0)

    def test_price_monotone_in_supply(self, power_curve):
        """Price never decreases as supply grows."""
        supplies = [0, 0.5, 1, 10, 100, 1_000, 5_000, 50_000]
        prices = [price(s, power_curve) for s in supplies]
        assert all(b >= a for a, b in zip(prices, prices[1:]))

    @pytest.mark.parametrize("supply", [0, 0.5, 0.99])
    def test_fractional_supply_holds_floor(self, power_curve, supply):
        """Supplies under one token still quote k, never less."""
        assert price(supply, power_curve) == pytest.approx(0.0001)

    def test_fractional_supply_buys_no_more(self, power_curve):
        """A buy at a higher supply never mints more tokens."""
        assert tokens_out(1, 0, power_curve) >= tokens_out(1, 0.5, power_curve)

    def test_linear_step_curve(self):
        """Linear curve only moves once per whole step unit."""
        curve = CurveParameters.linear(base_price=0.5, slope=0.1, step_unit=10)
        assert price(0, curve) == pytest.approx(0.5)
        assert price(9.9, curve) == pytest.approx(0.5)
        assert price(10, curve) == pytest.approx(0.6)
        assert price(35, curve) == pytest.approx(0.8)

    def test_linear_monotone(self):
        """Linear step curve is non-decreasing."""
        curve = CurveParameters.linear(base_price=1.0, slope=0.25, step_unit=1)
        prices = [price(s, curve) for s in range(0, 50)]
        assert all(b >= a for a, b in zip(prices, prices[1:]))


class TestTokensOut:
    """Tests for USDC -> tokens integration."""

    def test_zero_usdc_gives_zero(self, power_curve):
        assert tokens_out(0, 100, power_curve) == 0.0

    def test_negative_usdc_gives_zero(self, power_curve):
        assert tokens_out(-10, 100, power_curve) == 0.0

    def test_result_floored_to_token_decimals(self, power_curve):
        """Outputs carry at most 6 decimals."""
        out = tokens_out(37.5, 321, power_curve)
        assert out > 0
        assert _is_floored(out, 6)

    def test_flat_region_is_exact(self):
        """At a constant price, tokens = usdc / price."""
        curve = CurveParameters.linear(base_price=0.5, slope=0.01, step_unit=1000)
        assert tokens_out(100, 100, curve) == pytest.approx(200.0, abs=1e-5)

    def test_more_supply_buys_fewer_tokens(self, power_curve):
        """Later buyers get fewer tokens for the same USDC."""
        early = tokens_out(100, 200, power_curve)
        late = tokens_out(100, 2_000, power_curve)
        assert early > late

    @pytest.mark.parametrize("supply", [200, 1_000, 5_000])
    def test_step_count_converges(self, power_curve, supply):
        """1000 and 100 integration steps agree within 1%."""
        fine = tokens_out(100, supply, power_curve, steps=1000)
        coarse = tokens_out(100, supply, power_curve, steps=100)
        assert abs(fine - coarse) / fine < 0.01


class TestUsdcOut:
    """Tests for tokens -> USDC integration."""

    def test_zero_tokens_gives_zero(self, power_curve):
        assert usdc_out(0, 100, power_curve) == 0.0

    def test_capped_at_supply(self, power_curve):
        """Tokens beyond circulating supply are worth nothing."""
        assert usdc_out(50, 10, power_curve) == usdc_out(10, 10, power_curve)

    def test_result_floored_to_cents(self, power_curve):
        out = usdc_out(3.3, 500, power_curve)
        assert out > 0
        assert _is_floored(out, 2)

    def test_flat_region_value(self):
        """At a constant price, usdc = tokens * price."""
        curve = CurveParameters.linear(base_price=0.5, slope=0.01, step_unit=1000)
        assert usdc_out(100, 300, curve) == pytest.approx(50.0, abs=0.011)


class TestRoundTrip:
    """Buying then immediately selling never returns more than was paid."""

    @pytest.mark.parametrize("supply", [500, 1_000])
    def test_power_curve_round_trip(self, power_curve, supply):
        value = round_trip_value(100, supply, power_curve)
        assert value <= 100
        assert value >= 99.0

    def test_flat_round_trip(self):
        curve = CurveParameters.linear(base_price=0.5, slope=0.01, step_unit=1000)
        assert round_trip_value(100, 100, curve) <= 100


class TestHelpers:
    """Tests for payout, implied probability and flooring helpers."""

    def test_win_payout_proportional(self):
        assert win_payout(10, 100, 1000) == pytest.approx(100.0)

    def test_win_payout_empty_supply(self):
        assert win_payout(10, 0, 1000) == 0.0

    def test_implied_probability(self):
        assert implied_probability(0.5) == pytest.approx(2.0)
        assert implied_probability(0) == 0.0

    def test_floor_units(self):
        assert floor_units(1.23456789, 6) == pytest.approx(1.234567)
        assert floor_units(99.999, 2) == pytest.approx(99.99)
        assert floor_units(-3, 2) == 0.0


class TestValidation:
    """Tests for curve and engine validation."""

    def test_rejects_nonpositive_k(self):
        with pytest.raises(InvalidConfigurationError):
            validate_curve(CurveParameters.power(0, 2))

    def test_rejects_linear_without_base(self):
        with pytest.raises(InvalidConfigurationError):
            validate_curve(CurveParameters.linear(0, 0.1))

    def test_rejects_unknown_kind(self):
        with pytest.raises(InvalidConfigurationError):
            validate_curve(CurveParameters(kind="sigmoid"))

    def test_engine_rejects_zero_steps(self):
        with pytest.raises(InvalidConfigurationError):
            CurvePricingEngine(steps=0)

    def test_engine_uses_its_step_count(self, power_curve):
        engine = CurvePricingEngine(steps=100)
        assert engine.tokens_out(100, 200, power_curve) == tokens_out(100, 200, power_curve, steps=100)
