# src/strategies/momentum_trader.py

from typing import Any, Dict, List

from engine.models import OrderIntent, StrategyKind, Team
from .strategy import Strategy, whole_tokens, window_momentum


class MomentumTraderStrategy(Strategy):
    """
    Follow trends over a short window: buy into rallies, cut positions
    on slides. Size grows with the strength of the move.
    """

    kind = StrategyKind.MOMENTUM

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        params = dict(params or {})
        params.setdefault("history_size", params.get("lookback", 10))
        super().__init__(params, pricing)

        self.lookback: int = self.history_size
        self.threshold: float = self._float("threshold", 0.05)
        self.multiplier: float = self._float("multiplier", 2.0)
        self.min_history: int = self._int("min_history", 3)

        self.base_min: float = self._float("base_min", 10.0)
        self.base_max: float = self._float("base_max", 30.0)
        self.max_sell_fraction: float = self._float("max_sell_fraction", 0.8)

        self._require(self.lookback >= 2, "lookback must be at least 2")
        self._require(self.threshold > 0, "threshold must be positive")
        self._require(0 < self.base_min <= self.base_max, "need 0 < base_min <= base_max")

    def on_market(self, market, portfolio, rng) -> List[OrderIntent]:
        intents: List[OrderIntent] = []
        tracking = self.track(market.market_id)
        prices = self.prices(market)

        # Both windows advance together
        tracking.history_a.append(prices[Team.A])
        tracking.history_b.append(prices[Team.B])

        if len(tracking.history_a) < self.min_history:
            return intents

        for team in (Team.A, Team.B):
            momentum = window_momentum(tracking.history(team).values())
            tracking.momentum[team] = momentum
            if abs(momentum) <= self.threshold:
                continue

            if momentum > 0:
                base = rng.uniform(self.base_min, self.base_max)
                intents.append(self.buy(team, base * (1 + abs(momentum) * self.multiplier)))
                continue

            position = portfolio.tokens(market.market_id, team)
            if position <= 0:
                continue
            fraction = min(abs(momentum) * self.multiplier, self.max_sell_fraction)
            amount = whole_tokens(position * fraction)
            if amount > 0:
                intents.append(self.sell(team, amount))

        return intents
