# src/strategies/arbitrageur.py

from typing import Any, Dict, List

from engine.curve import implied_probability
from engine.models import OrderIntent, StrategyKind, Team
from .strategy import Strategy, cheaper_team


class ArbitrageurStrategy(Strategy):
    """
    Reads 1/price as each side's implied probability.

    If the two sum below 1 - min_profit, buying both sides locks in a
    profit: the investment is split in proportion to the *other* side's
    implied probability. Otherwise, when prices have drifted far apart
    and the book is over-round, bet on convergence by buying the cheaper
    side.
    """

    kind = StrategyKind.ARBITRAGEUR

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        super().__init__(params, pricing)

        self.min_profit: float = self._float("min_profit", 0.001)
        self.max_position: float = self._float("max_position", 500.0)
        self.aggressiveness: float = self._float("aggressiveness", 0.8)
        self.per_trade_cap: float = self._float("per_trade_cap", 100.0)

        self.divergence_threshold: float = self._float("divergence_threshold", 0.3)
        self.overround_threshold: float = self._float("overround_threshold", 1.05)

        self._require(0 <= self.min_profit < 1, "min_profit must be in [0, 1)")
        self._require(self.max_position > 0, "max_position must be positive")
        self._require(0 < self.aggressiveness <= 1, "aggressiveness must be in (0, 1]")

    def on_market(self, market, portfolio, rng) -> List[OrderIntent]:
        prices = self.prices(market)
        implied = {team: implied_probability(p) for team, p in prices.items()}
        total = implied[Team.A] + implied[Team.B]

        if 0 < total < 1 - self.min_profit:
            return self._lock_in(implied, total)

        gap = abs(prices[Team.A] - prices[Team.B])
        if gap > self.divergence_threshold and total > self.overround_threshold:
            size = min(gap * 100 * self.aggressiveness, self.max_position)
            return [self.buy(cheaper_team(prices), size)]

        return []

    def _lock_in(self, implied: Dict[Team, float], total: float) -> List[OrderIntent]:
        investment = min(self.max_position * self.aggressiveness, self.per_trade_cap)
        return [
            self.buy(Team.A, investment * implied[Team.B] / total),
            self.buy(Team.B, investment * implied[Team.A] / total),
        ]
