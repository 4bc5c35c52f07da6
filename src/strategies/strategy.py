import math
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

import numpy as np

from engine.curve import CurvePricingEngine
from engine.errors import InvalidConfigurationError
from engine.execution import RECOMMENDED_SLIPPAGE_BPS, validate_slippage
from engine.models import MarketStateSnapshot, OrderIntent, Side, StrategyKind, Team
from engine.portfolio import PortfolioState


class PriceHistory:
    """Fixed-capacity window of recent prices; the oldest falls off."""

    def __init__(self, capacity: int = 20):
        self._prices: deque = deque(maxlen=int(capacity))

    @property
    def capacity(self) -> int:
        return self._prices.maxlen

    def append(self, price: float) -> None:
        self._prices.append(float(price))

    def values(self) -> List[float]:
        return list(self._prices)

    def __len__(self) -> int:
        return len(self._prices)


@dataclass
class TrackingState:
    """Per-market memory one agent keeps between ticks."""

    history_a: PriceHistory
    history_b: PriceHistory
    volatility: Dict[Team, float] = field(default_factory=lambda: {Team.A: 0.0, Team.B: 0.0})
    momentum: Dict[Team, float] = field(default_factory=lambda: {Team.A: 0.0, Team.B: 0.0})
    imbalance_ratio: float = 0.5
    spread_bps: float = 0.0
    entry_price: Dict[Team, float] = field(default_factory=dict)

    def history(self, team: Team) -> PriceHistory:
        return self.history_a if team is Team.A else self.history_b


class Strategy:
    kind: StrategyKind

    def __init__(
        self,
        params: Dict[str, Any] | None = None,
        pricing: CurvePricingEngine | None = None,
    ):
        self.params = params or {}
        self.pricing = pricing or CurvePricingEngine()
        self.slippage_bps: int = validate_slippage(
            self.params.get("slippage_bps", RECOMMENDED_SLIPPAGE_BPS[self.kind])
        )
        self.history_size: int = self._int("history_size", 20)
        self._require(self.history_size >= 1, "history_size must be at least 1")

        # market_id -> TrackingState
        self.tracking: Dict[str, TrackingState] = {}

    def decide(
        self,
        market: MarketStateSnapshot,
        portfolio: PortfolioState,
        rng: random.Random,
    ) -> List[OrderIntent]:
        """
        Called once per market per tick. Returns zero or more intents;
        a halted market never produces any.
        """
        if market.halted:
            return []
        return self.on_market(market, portfolio, rng)

    def on_market(
        self,
        market: MarketStateSnapshot,
        portfolio: PortfolioState,
        rng: random.Random,
    ) -> List[OrderIntent]:
        raise NotImplementedError

    # ---- helpers ----

    def track(self, market_id: str) -> TrackingState:
        state = self.tracking.get(market_id)
        if state is None:
            state = TrackingState(
                history_a=PriceHistory(self.history_size),
                history_b=PriceHistory(self.history_size),
            )
            self.tracking[market_id] = state
        return state

    def prices(self, market: MarketStateSnapshot) -> Dict[Team, float]:
        return {
            Team.A: self.pricing.team_price(market, Team.A),
            Team.B: self.pricing.team_price(market, Team.B),
        }

    def buy(self, team: Team, usdc: float) -> OrderIntent:
        return OrderIntent(side=Side.BUY, team=team, amount=float(usdc), slippage_bps=self.slippage_bps)

    def sell(self, team: Team, tokens: float) -> OrderIntent:
        return OrderIntent(side=Side.SELL, team=team, amount=float(tokens), slippage_bps=self.slippage_bps)

    def _require(self, ok: bool, message: str) -> None:
        if not ok:
            raise InvalidConfigurationError(f"{type(self).__name__}: {message}")

    def _float(self, name: str, default: float) -> float:
        return self._param(name, default, float)

    def _int(self, name: str, default: int) -> int:
        return self._param(name, default, int)

    def _team(self, name: str) -> Team | None:
        value = self.params.get(name)
        if not value:
            return None
        return self._param(name, None, Team)

    def _param(self, name: str, default: Any, cast: Callable[[Any], Any]) -> Any:
        value = self.params.get(name, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            raise InvalidConfigurationError(
                f"{type(self).__name__}: bad value for {name}: {value!r}"
            ) from None


def cheaper_team(prices: Dict[Team, float]) -> Team:
    return Team.A if prices[Team.A] < prices[Team.B] else Team.B


def whole_tokens(amount: float) -> float:
    return float(math.floor(amount))


# -------------------------
# Series statistics
# -------------------------

def returns_volatility(prices: Sequence[float]) -> float:
    """Population stdev of simple returns; 0 with fewer than 3 prices."""
    if len(prices) < 3:
        return 0.0
    arr = np.asarray(prices, dtype=float)
    returns = np.diff(arr) / arr[:-1]
    return float(np.std(returns))


def moving_average_momentum(prices: Sequence[float], short: int = 5, long: int = 10) -> float:
    """(shortMA - longMA) / longMA; 0 until `short` prices are available."""
    if len(prices) < short:
        return 0.0
    arr = np.asarray(prices, dtype=float)
    short_ma = arr[-short:].mean()
    long_ma = arr[-min(long, len(arr)):].mean()
    if long_ma == 0:
        return 0.0
    return float((short_ma - long_ma) / long_ma)


def window_momentum(prices: Sequence[float]) -> float:
    """Relative change from the first to the last price in the window."""
    if len(prices) < 2 or prices[0] == 0:
        return 0.0
    return (prices[-1] - prices[0]) / prices[0]
