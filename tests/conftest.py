# =============================================================================
# Shared fixtures for the simulator test suite
# =============================================================================

import random
from typing import Iterable

import pytest

from engine.models import CurveParameters, MarketPosition, MarketStateSnapshot
from engine.portfolio import PortfolioState


class ScriptedRandom(random.Random):
    """
    Random whose random() replays a fixed script. uniform() is built on
    random(), so it follows the script too. Once the script runs out the
    last value repeats.
    """

    def __init__(self, values: Iterable[float]):
        super().__init__(0)
        self._values = list(values)
        self._last = 0.5
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self._values:
            self._last = self._values.pop(0)
        return self._last


def make_market(
    team_a_supply: float = 0.0,
    team_b_supply: float = 0.0,
    pool_value: float = 0.0,
    curve: CurveParameters | None = None,
    halted: bool = False,
    market_id: str = "m1",
) -> MarketStateSnapshot:
    return MarketStateSnapshot(
        market_id=market_id,
        team_a_supply=team_a_supply,
        team_b_supply=team_b_supply,
        pool_value=pool_value,
        curve=curve or CurveParameters.power(0.0001, 2.0),
        halted=halted,
    )


def flat_market(price_a: float, price_b: float, market_id: str = "m1") -> MarketStateSnapshot:
    """
    Market on a linear curve (base price_a, slope 0.01 per token) whose
    team B supply is chosen so that B quotes price_b. Requires
    price_b >= price_a.
    """
    curve = CurveParameters.linear(base_price=price_a, slope=0.01, step_unit=1.0)
    supply_b = round((price_b - price_a) / 0.01)
    return make_market(0.0, float(supply_b), 10_000.0, curve, market_id=market_id)


def make_portfolio(usdc: float = 1000.0, market_id: str = "m1", **tokens) -> PortfolioState:
    state = PortfolioState(agent_id="tester", usdc=usdc)
    if tokens:
        state.positions[market_id] = MarketPosition(**tokens)
    return state


@pytest.fixture
def power_curve() -> CurveParameters:
    return CurveParameters.power(0.0001, 2.0)


@pytest.fixture
def scripted():
    return ScriptedRandom
