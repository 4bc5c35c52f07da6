# =============================================================================
# UNIT TESTS - MOMENTUM TRADER
# =============================================================================

import pytest

from conftest import ScriptedRandom, make_market, make_portfolio
from engine.models import CurveParameters, Side, Team
from strategies.momentum_trader import MomentumTraderStrategy

# A quotes 1.0 + 0.2 per whole token of supply, so supply 1 -> 1.2
STEP = CurveParameters.linear(base_price=1.0, slope=0.2, step_unit=1.0)


def _market(supply_a: float):
    return make_market(team_a_supply=supply_a, team_b_supply=0, pool_value=10_000, curve=STEP)


def _prefill(strategy, a_prices, b_prices):
    tracking = strategy.track("m1")
    for p in a_prices:
        tracking.history_a.append(p)
    for p in b_prices:
        tracking.history_b.append(p)
    return tracking


class TestMomentumTrader:
    """Tests for window momentum entries and exits."""

    def test_rising_window_buys(self):
        """[1, 1, 1, 1, 1.2] over a 5-sample window with 5% threshold buys."""
        mom = MomentumTraderStrategy({"lookback": 5, "threshold": 0.05})
        _prefill(mom, [1, 1, 1, 1], [1, 1, 1, 1])

        intents = mom.decide(_market(1), make_portfolio(), ScriptedRandom([0.5]))

        assert len(intents) == 1
        assert intents[0].side is Side.BUY
        assert intents[0].team is Team.A
        # base 20, momentum 0.2, multiplier 2
        assert intents[0].amount == pytest.approx(20 * (1 + 0.2 * 2))
        assert intents[0].slippage_bps == 200

    def test_falling_window_sells_fraction(self):
        mom = MomentumTraderStrategy({"lookback": 5, "threshold": 0.05})
        _prefill(mom, [1.5, 1.5, 1.5, 1.5], [1, 1, 1, 1])
        portfolio = make_portfolio(tokens_a=101.0)

        intents = mom.decide(_market(1), portfolio, ScriptedRandom([]))

        # momentum -0.2, fraction min(0.4, 0.8) of 101 tokens
        assert len(intents) == 1
        assert intents[0].side is Side.SELL
        assert intents[0].amount == 40

    def test_falling_window_without_position_holds(self):
        mom = MomentumTraderStrategy({"lookback": 5, "threshold": 0.05})
        _prefill(mom, [1.5, 1.5, 1.5, 1.5], [1, 1, 1, 1])
        assert mom.decide(_market(1), make_portfolio(), ScriptedRandom([])) == []

    def test_sell_fraction_capped(self):
        mom = MomentumTraderStrategy({"lookback": 5, "threshold": 0.05, "multiplier": 10})
        _prefill(mom, [2.0, 2.0, 2.0, 2.0], [1, 1, 1, 1])
        intents = mom.decide(_market(1), make_portfolio(tokens_a=101.0), ScriptedRandom([]))
        assert intents[0].amount == 80

    def test_needs_minimum_history(self):
        mom = MomentumTraderStrategy()
        _prefill(mom, [1.0], [1.0])
        assert mom.decide(_market(1), make_portfolio(), ScriptedRandom([0.5])) == []

    def test_window_is_bounded(self):
        mom = MomentumTraderStrategy({"lookback": 5})
        for _ in range(8):
            mom.decide(_market(0), make_portfolio(), ScriptedRandom([0.5]))
        assert len(mom.track("m1").history_a) == 5
        assert len(mom.track("m1").history_b) == 5
