# src/strategies/whale_trader.py

from typing import Any, Dict, List

from engine.models import OrderIntent, Side, StrategyKind, Team
from .strategy import Strategy, cheaper_team, whole_tokens

WHALE_MODES = ("value", "pump", "dump", "manipulate")


class WhaleTraderStrategy(Strategy):
    """
    Rare, large trades. The mode decides what the whale does once it
    wakes up:
      value      - buy the cheaper side when the price gap is wide
      pump       - several sequential buys on one side
      dump       - sell most of the largest holding (pump if none)
      manipulate - flip direction and team relative to its last trade
    """

    kind = StrategyKind.WHALE

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        super().__init__(params, pricing)

        self.min_trade: float = self._float("min_trade", 100.0)
        self.max_trade: float = self._float("max_trade", 1000.0)
        self.frequency: float = self._float("frequency", 0.05)
        self.mode: str = self.params.get("mode", "value")

        self.target_team: Team | None = self._team("target_team")

        self.value_gap: float = self._float("value_gap", 0.2)
        self.pump_slices: int = self._int("pump_slices", 3)
        self.dump_min_tokens: float = self._float("dump_min_tokens", 100.0)
        self.dump_fraction: float = self._float("dump_fraction", 0.8)
        self.manipulate_range: float = self._float("manipulate_range", 200.0)

        self._require(self.mode in WHALE_MODES, f"mode must be one of {WHALE_MODES}")
        self._require(0 < self.min_trade <= self.max_trade, "need 0 < min_trade <= max_trade")
        self._require(0 <= self.frequency <= 1, "frequency must be in [0, 1]")
        self._require(self.pump_slices >= 1, "pump_slices must be at least 1")

    def on_market(self, market, portfolio, rng) -> List[OrderIntent]:
        if rng.random() > self.frequency:
            return []

        if self.mode == "pump":
            return self._pump(rng)
        if self.mode == "dump":
            return self._dump(market, portfolio, rng)
        if self.mode == "manipulate":
            return self._manipulate(market, portfolio, rng)
        return self._value(market, rng)

    # ----------------- modes -----------------

    def _value(self, market, rng) -> List[OrderIntent]:
        prices = self.prices(market)
        if abs(prices[Team.A] - prices[Team.B]) <= self.value_gap:
            return []
        size = rng.uniform(self.min_trade, self.max_trade)
        return [self.buy(cheaper_team(prices), size)]

    def _pump(self, rng) -> List[OrderIntent]:
        if self.target_team is not None:
            team = self.target_team
        else:
            team = Team.A if rng.random() < 0.5 else Team.B

        total = self.max_trade * (0.7 + rng.random() * 0.3)
        slice_size = total / self.pump_slices
        return [self.buy(team, slice_size) for _ in range(self.pump_slices)]

    def _dump(self, market, portfolio, rng) -> List[OrderIntent]:
        pos = portfolio.position(market.market_id)
        if pos.tokens_a <= self.dump_min_tokens and pos.tokens_b <= self.dump_min_tokens:
            return self._pump(rng)

        team = Team.A if pos.tokens_a > pos.tokens_b else Team.B
        amount = whole_tokens(pos.tokens(team) * self.dump_fraction)
        return [self.sell(team, amount)] if amount > 0 else []

    def _manipulate(self, market, portfolio, rng) -> List[OrderIntent]:
        last = portfolio.last_trade
        target = Team.B if last and last["team"] is Team.A else Team.A
        size = self.min_trade + rng.random() * self.manipulate_range

        if last and last["side"] is Side.BUY:
            position = portfolio.tokens(market.market_id, target)
            if position > 0:
                amount = whole_tokens(position * 0.5)
                if amount > 0:
                    return [self.sell(target, amount)]
                return []
        return [self.buy(target, size)]
