# src/strategies/retail_trader.py

from typing import Any, Dict, List

from engine.models import OrderIntent, StrategyKind, Team
from .strategy import Strategy, cheaper_team, whole_tokens


class RetailTraderStrategy(Strategy):
    """
    Noisy small-ticket trader. Sits out most ticks, leans toward a
    favourite (or the cheaper) side, sometimes chases with a double-size
    buy, and panic-sells when a position falls well below its entry.
    """

    kind = StrategyKind.RETAIL

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        super().__init__(params, pricing)

        self.min_trade: float = self._float("min_trade", 1.0)
        self.max_trade: float = self._float("max_trade", 25.0)
        self.trade_frequency: float = self._float("trade_frequency", 0.3)
        self.sell_probability: float = self._float("sell_probability", 0.2)
        self.panic_sell_threshold: float = self._float("panic_sell_threshold", 0.8)
        self.fomo_probability: float = self._float("fomo_probability", 0.1)

        self.favorite_team: Team | None = self._team("favorite_team")

        self._require(0 < self.min_trade <= self.max_trade, "need 0 < min_trade <= max_trade")
        self._require(0 <= self.trade_frequency <= 1, "trade_frequency must be in [0, 1]")
        self._require(0 < self.panic_sell_threshold <= 1, "panic_sell_threshold must be in (0, 1]")

    def on_market(self, market, portfolio, rng) -> List[OrderIntent]:
        if rng.random() > self.trade_frequency:
            return []

        tracking = self.track(market.market_id)
        prices = self.prices(market)
        pos = portfolio.position(market.market_id)

        wants_sell = rng.random() < self.sell_probability
        if wants_sell and (pos.tokens_a > 0 or pos.tokens_b > 0):
            return self._sell(tracking, prices, pos, rng)
        return self._buy(tracking, prices, rng)

    def _buy(self, tracking, prices, rng) -> List[OrderIntent]:
        if self.favorite_team is not None:
            lean, odds = self.favorite_team, 0.7
        else:
            lean, odds = cheaper_team(prices), 0.6
        team = lean if rng.random() < odds else lean.other

        size = rng.uniform(self.min_trade, self.max_trade)
        if rng.random() < self.fomo_probability:
            size *= 2

        tracking.entry_price[team] = prices[team]
        return [self.buy(team, size)]

    def _sell(self, tracking, prices, pos, rng) -> List[OrderIntent]:
        if pos.tokens_a > 0 and pos.tokens_b > 0:
            team = Team.A if rng.random() < 0.5 else Team.B
        elif pos.tokens_a > 0:
            team = Team.A
        else:
            team = Team.B

        position = pos.tokens(team)
        current = prices[team]
        entry = tracking.entry_price.get(team) or current

        if current / entry < self.panic_sell_threshold:
            amount = whole_tokens(position * 0.8)
        else:
            amount = whole_tokens(position * (rng.random() * 0.5 + 0.1))

        return [self.sell(team, amount)] if amount > 0 else []
