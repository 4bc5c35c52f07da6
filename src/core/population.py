import random
from typing import Any, Callable, Dict, List, Mapping

from engine.curve import CurvePricingEngine
from engine.errors import InvalidConfigurationError
from engine.execution import ExecutionGuard
from engine.models import MarketStateSnapshot, OrderIntent, StrategyKind
from engine.portfolio import PortfolioTracker
from strategies.arbitrageur import ArbitrageurStrategy
from strategies.intelligent_market_maker import IntelligentMarketMakerStrategy
from strategies.market_maker import MarketMakerStrategy
from strategies.momentum_trader import MomentumTraderStrategy
from strategies.retail_trader import RetailTraderStrategy
from strategies.strategy import Strategy
from strategies.whale_trader import WHALE_MODES, WhaleTraderStrategy

STRATEGY_REGISTRY: Dict[StrategyKind, type] = {
    StrategyKind.MARKET_MAKER: MarketMakerStrategy,
    StrategyKind.INTELLIGENT_MARKET_MAKER: IntelligentMarketMakerStrategy,
    StrategyKind.ARBITRAGEUR: ArbitrageurStrategy,
    StrategyKind.MOMENTUM: MomentumTraderStrategy,
    StrategyKind.WHALE: WhaleTraderStrategy,
    StrategyKind.RETAIL: RetailTraderStrategy,
}

AGENT_PREFIX: Dict[StrategyKind, str] = {
    StrategyKind.MARKET_MAKER: "MM",
    StrategyKind.INTELLIGENT_MARKET_MAKER: "IMM",
    StrategyKind.ARBITRAGEUR: "ARB",
    StrategyKind.MOMENTUM: "MOM",
    StrategyKind.WHALE: "WHALE",
    StrategyKind.RETAIL: "RETAIL",
}

DEFAULT_POPULATION: Dict[StrategyKind, int] = {
    StrategyKind.MARKET_MAKER: 2,
    StrategyKind.INTELLIGENT_MARKET_MAKER: 1,
    StrategyKind.ARBITRAGEUR: 1,
    StrategyKind.MOMENTUM: 2,
    StrategyKind.WHALE: 1,
    StrategyKind.RETAIL: 4,
}


class TradingAgent:
    """
    One strategy plus everything it owns: portfolio tracker, execution
    guard and random source.
    """

    def __init__(
        self,
        agent_id: str,
        strategy: Strategy,
        tracker: PortfolioTracker | None = None,
        guard: ExecutionGuard | None = None,
        rng: random.Random | None = None,
        initial_usdc: float = 0.0,
    ):
        self.agent_id = agent_id
        self.strategy = strategy
        self.tracker = tracker or PortfolioTracker(agent_id, initial_usdc)
        self.guard = guard or ExecutionGuard(strategy.pricing)
        self.rng = rng or random.Random()
        self.equity_curve: List[float] = [self.tracker.state.usdc]

    @property
    def kind(self) -> StrategyKind:
        return self.strategy.kind

    def decide(self, market: MarketStateSnapshot) -> List[OrderIntent]:
        return self.strategy.decide(market, self.tracker.snapshot(), self.rng)

    def __repr__(self) -> str:
        return f"TradingAgent({self.agent_id!r}, {self.kind.value})"


def parse_kind(kind: StrategyKind | str) -> StrategyKind:
    try:
        return StrategyKind(kind)
    except ValueError:
        raise InvalidConfigurationError(f"unknown strategy kind: {kind!r}") from None


def create_strategy(
    kind: StrategyKind | str,
    params: Dict[str, Any] | None = None,
    pricing: CurvePricingEngine | None = None,
) -> Strategy:
    return STRATEGY_REGISTRY[parse_kind(kind)](params, pricing)


# -------------------------
# Randomised population
# -------------------------

def _market_maker_params(rng: random.Random) -> Dict[str, Any]:
    return {"max_position": rng.uniform(100, 300)}


def _momentum_params(rng: random.Random) -> Dict[str, Any]:
    return {
        "threshold": rng.uniform(0.03, 0.08),
        "multiplier": rng.uniform(1.5, 2.5),
    }


def _retail_params(rng: random.Random) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "max_trade": rng.uniform(20, 50),
        "trade_frequency": rng.uniform(0.2, 0.5),
    }
    if rng.random() < 0.3:
        params["favorite_team"] = "A" if rng.random() < 0.5 else "B"
    return params


def _whale_params(rng: random.Random) -> Dict[str, Any]:
    return {
        "min_trade": 200.0,
        "max_trade": rng.uniform(500, 1000),
        "frequency": rng.uniform(0.02, 0.05),
        "mode": WHALE_MODES[int(rng.random() * len(WHALE_MODES))],
    }


PARAM_SAMPLERS: Dict[StrategyKind, Callable[[random.Random], Dict[str, Any]]] = {
    StrategyKind.MARKET_MAKER: _market_maker_params,
    StrategyKind.MOMENTUM: _momentum_params,
    StrategyKind.RETAIL: _retail_params,
    StrategyKind.WHALE: _whale_params,
}


def build_population(
    counts: Mapping[StrategyKind | str, int] | None = None,
    params: Mapping[StrategyKind | str, Dict[str, Any]] | None = None,
    initial_usdc: float = 1000.0,
    seed: int | None = None,
    pricing: CurvePricingEngine | None = None,
    randomize: bool = True,
) -> List[TradingAgent]:
    """
    Build agents from per-kind counts. With `randomize`, parameters the
    caller did not pin are drawn from per-kind ranges. Every agent gets
    its own Random seeded from the population seed.
    """
    pricing = pricing or CurvePricingEngine()
    counts = {parse_kind(k): int(v) for k, v in (counts or DEFAULT_POPULATION).items()}
    params = {parse_kind(k): dict(v or {}) for k, v in (params or {}).items()}
    master = random.Random(seed)

    agents: List[TradingAgent] = []
    for kind in STRATEGY_REGISTRY:
        count = counts.get(kind, 0)
        if count < 0:
            raise InvalidConfigurationError(f"negative agent count for {kind.value}")

        for i in range(count):
            agent_params: Dict[str, Any] = {}
            sampler = PARAM_SAMPLERS.get(kind)
            if randomize and sampler is not None:
                agent_params.update(sampler(master))
            agent_params.update(params.get(kind, {}))

            agent_id = f"{AGENT_PREFIX[kind]}-{i + 1}"
            agents.append(
                TradingAgent(
                    agent_id,
                    create_strategy(kind, agent_params, pricing),
                    rng=random.Random(master.getrandbits(32)),
                    initial_usdc=initial_usdc,
                )
            )
    return agents
