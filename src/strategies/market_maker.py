# src/strategies/market_maker.py

from typing import Any, Dict, List

from engine.models import OrderIntent, StrategyKind, Team
from .strategy import Strategy, whole_tokens


class MarketMakerStrategy(Strategy):
    """
    Keep USDC exposure on both sides of a market roughly balanced.
    Under-exposed sides get small random buys, over-exposed sides are
    trimmed by 20%.
    """

    kind = StrategyKind.MARKET_MAKER

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        super().__init__(params, pricing)

        self.max_position: float = self._float("max_position", 100.0)
        self.min_trade: float = self._float("min_trade", 5.0)
        self.max_trade: float = self._float("max_trade", 20.0)

        # Buy while exposure < max_position * rebalance_threshold
        self.rebalance_threshold: float = self._float("rebalance_threshold", 0.7)
        # Trim once exposure > max_position * overweight_multiple
        self.overweight_multiple: float = self._float("overweight_multiple", 1.2)
        self.buy_probability: float = self._float("buy_probability", 0.5)
        self.sell_fraction: float = self._float("sell_fraction", 0.2)
        self.min_sell_tokens: float = self._float("min_sell_tokens", 10.0)

        self._require(self.max_position > 0, "max_position must be positive")
        self._require(0 < self.min_trade <= self.max_trade, "need 0 < min_trade <= max_trade")
        self._require(0 < self.rebalance_threshold <= 1, "rebalance_threshold must be in (0, 1]")

    def on_market(self, market, portfolio, rng) -> List[OrderIntent]:
        intents: List[OrderIntent] = []
        prices = self.prices(market)
        pos = portfolio.position(market.market_id)

        # One size per tick, shared by both sides
        trade_size = rng.uniform(self.min_trade, self.max_trade)
        usdc_left = portfolio.usdc

        for team in (Team.A, Team.B):
            exposure = pos.tokens(team) * prices[team]
            if exposure >= self.max_position * self.rebalance_threshold:
                continue
            if rng.random() >= self.buy_probability:
                continue

            size = min(trade_size, usdc_left, self.max_position - exposure)
            if size <= 0:
                continue
            intents.append(self.buy(team, size))
            usdc_left -= size

        for team in (Team.A, Team.B):
            tokens = pos.tokens(team)
            exposure = tokens * prices[team]
            if exposure > self.max_position * self.overweight_multiple and tokens > self.min_sell_tokens:
                amount = whole_tokens(tokens * self.sell_fraction)
                if amount > 0:
                    intents.append(self.sell(team, amount))

        return intents
