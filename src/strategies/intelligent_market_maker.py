# src/strategies/intelligent_market_maker.py

from typing import Any, Dict, List

from engine.models import MarketStateSnapshot, OrderIntent, StrategyKind, Team
from engine.portfolio import PortfolioState
from .strategy import (
    Strategy,
    TrackingState,
    moving_average_momentum,
    returns_volatility,
    whole_tokens,
)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class IntelligentMarketMakerStrategy(Strategy):
    """
    Adaptive market maker.

    Tracks a rolling price window per side and derives:
      - volatility (stdev of returns) to widen the spread and shrink size
      - MA crossover momentum to shade fair value and fade trends
      - inventory imbalance to skew sizing and refuse one-way quotes

    A buy is quoted when the curve price sits below fair * (1 - spread),
    a sell when it sits above fair * (1 + spread). Quotes go out only on
    ticks that pass the execution probability gate.
    """

    kind = StrategyKind.INTELLIGENT_MARKET_MAKER

    def __init__(self, params: Dict[str, Any] | None = None, pricing=None):
        params = dict(params or {})
        params.setdefault("history_size", params.get("price_history_size", 20))
        super().__init__(params, pricing)

        self.base_spread_bps: float = self._float("base_spread_bps", 100)
        self.min_spread_bps: float = self._float("min_spread_bps", 50)
        self.max_spread_bps: float = self._float("max_spread_bps", 300)

        self.max_position: float = self._float("max_position", 200.0)
        self.min_order: float = self._float("min_order", 10.0)
        self.max_order: float = self._float("max_order", 50.0)

        self.inventory_target: float = self._float("inventory_target", 0.5)
        self.max_inventory_deviation: float = self._float("max_inventory_deviation", 0.3)

        self.momentum_guard: float = self._float("momentum_guard", 0.1)
        self.execution_probability: float = self._float("execution_probability", 0.4)
        self.balance_fraction: float = self._float("balance_fraction", 0.3)
        self.sell_fraction: float = self._float("sell_fraction", 0.2)
        self.min_sell_tokens: float = self._float("min_sell_tokens", 10.0)

        self._require(
            0 < self.min_spread_bps <= self.max_spread_bps,
            "need 0 < min_spread_bps <= max_spread_bps",
        )
        self._require(0 < self.min_order <= self.max_order, "need 0 < min_order <= max_order")
        self._require(0 <= self.max_inventory_deviation <= 0.5, "max_inventory_deviation must be in [0, 0.5]")
        self._require(0 <= self.execution_probability <= 1, "execution_probability must be in [0, 1]")

    # ----------------- analytics -----------------

    def update_tracking(
        self,
        tracking: TrackingState,
        prices: Dict[Team, float],
        tokens: Dict[Team, float],
    ) -> None:
        for team in (Team.A, Team.B):
            history = tracking.history(team)
            history.append(prices[team])
            tracking.volatility[team] = returns_volatility(history.values())
            tracking.momentum[team] = moving_average_momentum(history.values())

        value_a = tokens[Team.A] * prices[Team.A]
        value_b = tokens[Team.B] * prices[Team.B]
        total = value_a + value_b
        if total > 0:
            tracking.imbalance_ratio = value_a / total

        tracking.spread_bps = self.dynamic_spread(tracking)

    def dynamic_spread(self, tracking: TrackingState) -> float:
        avg_vol = (tracking.volatility[Team.A] + tracking.volatility[Team.B]) / 2
        imbalance = abs(tracking.imbalance_ratio - self.inventory_target)
        max_mom = max(abs(tracking.momentum[Team.A]), abs(tracking.momentum[Team.B]))

        spread = self.base_spread_bps
        spread *= 1 + avg_vol * 10
        spread *= 1 + imbalance * 2
        spread *= 1 + max_mom * 3
        return _clamp(spread, self.min_spread_bps, self.max_spread_bps)

    def fair_values(self, prices: Dict[Team, float], tracking: TrackingState) -> Dict[Team, float]:
        """
        Price-normalised probabilities shaded against momentum (mean
        reversion), renormalised and scaled back to price units.
        """
        total = prices[Team.A] + prices[Team.B]
        adjusted = {
            team: prices[team] / total - tracking.momentum[team] * 0.05
            for team in (Team.A, Team.B)
        }
        adjusted_total = adjusted[Team.A] + adjusted[Team.B]
        if adjusted_total <= 0:
            return dict(prices)
        return {team: adjusted[team] / adjusted_total * total for team in (Team.A, Team.B)}

    def order_size(self, tracking: TrackingState, base_size: float, is_buy: bool, team: Team) -> float:
        size = base_size

        # shrink in volatile markets
        size *= _clamp(1 - tracking.volatility[team] * 2, 0.3, 1.5)

        if is_buy:
            # buy more of the side we are short of
            if team is Team.A:
                inventory_factor = (1 - tracking.imbalance_ratio) * 2
            else:
                inventory_factor = tracking.imbalance_ratio * 2
            size *= _clamp(inventory_factor, 0.3, 1.5)

            # fade rallies
            size *= _clamp(1 - tracking.momentum[team] * 0.5, 0.3, 1.5)

        return _clamp(size, self.min_order, self.max_order)

    def should_quote(self, tracking: TrackingState, team: Team, is_buy: bool) -> bool:
        imbalance = tracking.imbalance_ratio
        if abs(imbalance - self.inventory_target) > self.max_inventory_deviation:
            # only trades that move us back toward the target
            a_heavy = imbalance > self.inventory_target
            if team is Team.A:
                return (not a_heavy) if is_buy else a_heavy
            return a_heavy if is_buy else (not a_heavy)

        momentum = tracking.momentum[team]
        if is_buy and momentum > self.momentum_guard:
            return False
        if not is_buy and momentum < -self.momentum_guard:
            return False
        return True

    # ----------------- main hook -----------------

    def on_market(
        self,
        market: MarketStateSnapshot,
        portfolio: PortfolioState,
        rng,
    ) -> List[OrderIntent]:
        intents: List[OrderIntent] = []
        tracking = self.track(market.market_id)
        prices = self.prices(market)
        pos = portfolio.position(market.market_id)
        tokens = {Team.A: pos.tokens_a, Team.B: pos.tokens_b}

        self.update_tracking(tracking, prices, tokens)
        fair = self.fair_values(prices, tracking)
        spread = tracking.spread_bps / 10_000

        if rng.random() >= self.execution_probability:
            return intents

        for team in (Team.A, Team.B):
            price = prices[team]
            if price < fair[team] * (1 - spread):
                if not self.should_quote(tracking, team, True):
                    continue
                if portfolio.usdc < self.min_order:
                    continue
                base_size = rng.uniform(self.min_order, self.max_order)
                size = min(
                    self.order_size(tracking, base_size, True, team),
                    portfolio.usdc * self.balance_fraction,
                    self.max_position - tokens[team] * price,
                )
                if size >= self.min_order:
                    intents.append(self.buy(team, size))

            elif price > fair[team] * (1 + spread) and tokens[team] > self.min_sell_tokens:
                amount = whole_tokens(tokens[team] * self.sell_fraction)
                if amount > 0 and self.should_quote(tracking, team, False):
                    intents.append(self.sell(team, amount))

        return intents
