import os
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from engine.curve import validate_curve
from engine.errors import InvalidConfigurationError
from engine.models import CurveParameters, MarketStateSnapshot, StrategyKind
from .population import DEFAULT_POPULATION

# Load .env from repo root
load_dotenv()

DEFAULT_CURVE = {"kind": "power", "k": 0.0001, "n": 2.0}


def parse_curve(data: Dict[str, Any] | None) -> CurveParameters:
    data = dict(DEFAULT_CURVE if data is None else data)
    kind = data.get("kind", "power")
    try:
        if kind == "linear":
            curve = CurveParameters.linear(
                base_price=float(data["base_price"]),
                slope=float(data.get("slope", 0.0)),
                step_unit=float(data.get("step_unit", 1.0)),
            )
        else:
            curve = CurveParameters(
                kind=kind,
                k=float(data.get("k", DEFAULT_CURVE["k"])),
                n=float(data.get("n", DEFAULT_CURVE["n"])),
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"bad curve config {data!r}: {exc}") from exc
    return validate_curve(curve)


def parse_market(data: Dict[str, Any]) -> MarketStateSnapshot:
    if "market_id" not in data:
        raise InvalidConfigurationError(f"market config needs a market_id: {data!r}")
    try:
        market = MarketStateSnapshot(
            market_id=str(data["market_id"]),
            team_a_supply=float(data.get("team_a_supply", 0.0)),
            team_b_supply=float(data.get("team_b_supply", 0.0)),
            pool_value=float(data.get("pool_value", 0.0)),
            curve=parse_curve(data.get("curve")),
            halted=bool(data.get("halted", False)),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"bad market config {data!r}: {exc}") from exc

    if market.team_a_supply < 0 or market.team_b_supply < 0 or market.pool_value < 0:
        raise InvalidConfigurationError(f"negative supply or pool in market {market.market_id}")
    return market


def random_markets(count: int, seed: Optional[int] = None) -> List[MarketStateSnapshot]:
    """Markets with random opening supplies (0-999) and pools (0-9999 USDC)."""
    rng = random.Random(seed)
    curve = parse_curve(None)
    return [
        MarketStateSnapshot(
            market_id=f"market-{i + 1}",
            team_a_supply=float(int(rng.random() * 1000)),
            team_b_supply=float(int(rng.random() * 1000)),
            pool_value=float(int(rng.random() * 10000)),
            curve=curve,
        )
        for i in range(count)
    ]


@dataclass
class SimulationConfig:
    markets: List[MarketStateSnapshot] = field(default_factory=list)
    population: Dict[StrategyKind, int] = field(default_factory=lambda: dict(DEFAULT_POPULATION))
    agent_params: Dict[StrategyKind, Dict[str, Any]] = field(default_factory=dict)
    initial_usdc: float = 1000.0
    tick_interval: float = 0.0
    total_ticks: Optional[int] = 50
    report_interval: int = 5
    seed: Optional[int] = None
    integration_steps: int = 1000
    randomize_population: bool = True
    # Set to trade against a remote market service instead of in-process markets
    gateway_url: Optional[str] = None

    def __post_init__(self):
        if not self.markets:
            raise InvalidConfigurationError("at least one market is required")
        ids = [m.market_id for m in self.markets]
        if len(set(ids)) != len(ids):
            raise InvalidConfigurationError(f"duplicate market ids: {ids}")
        if self.initial_usdc < 0:
            raise InvalidConfigurationError("initial_usdc must be >= 0")
        if self.tick_interval < 0:
            raise InvalidConfigurationError("tick_interval must be >= 0")
        if self.total_ticks is not None and self.total_ticks < 0:
            raise InvalidConfigurationError("total_ticks must be >= 0")
        if self.report_interval < 0:
            raise InvalidConfigurationError("report_interval must be >= 0")
        if self.integration_steps < 1:
            raise InvalidConfigurationError("integration_steps must be >= 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        """
        Expected shape:
        {
            "markets": [{"market_id": ..., "team_a_supply": ..., "curve": {...}}, ...]
                       or an int (number of random markets),
            "population": {"market_maker": 2, ...},
            "agent_params": {"whale": {"mode": "pump"}, ...},
            "initial_usdc": 1000, "tick_interval": 0.0, "total_ticks": 50,
            "report_interval": 5, "seed": 42, "integration_steps": 1000,
            "randomize_population": true,
            "gateway_url": "http://markets.internal:8080"
        }
        """
        data = data or {}
        seed = data.get("seed")

        markets_raw = data.get("markets", 1)
        if isinstance(markets_raw, int):
            markets = random_markets(markets_raw, seed)
        else:
            markets = [parse_market(m) for m in markets_raw]

        try:
            population = {
                StrategyKind(k): int(v)
                for k, v in (data.get("population") or DEFAULT_POPULATION).items()
            }
            agent_params = {
                StrategyKind(k): dict(v or {})
                for k, v in (data.get("agent_params") or {}).items()
            }
            total_ticks = data.get("total_ticks", 50)
            return cls(
                markets=markets,
                population=population,
                agent_params=agent_params,
                initial_usdc=float(data.get("initial_usdc", 1000.0)),
                tick_interval=float(data.get("tick_interval", 0.0)),
                total_ticks=None if total_ticks is None else int(total_ticks),
                report_interval=int(data.get("report_interval", 5)),
                seed=None if seed is None else int(seed),
                integration_steps=int(data.get("integration_steps", 1000)),
                randomize_population=bool(data.get("randomize_population", True)),
                gateway_url=str(data["gateway_url"]) if data.get("gateway_url") else None,
            )
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"bad simulation config: {exc}") from exc

    @classmethod
    def from_env(cls, overrides: Dict[str, Any] | None = None) -> "SimulationConfig":
        """Build from SIM_* and MARKET_GATEWAY_URL environment variables (and .env)."""
        data: Dict[str, Any] = {"markets": int(os.getenv("SIM_MARKETS", "1"))}

        env_map = {
            "SIM_TOTAL_TICKS": "total_ticks",
            "SIM_TICK_INTERVAL": "tick_interval",
            "SIM_REPORT_INTERVAL": "report_interval",
            "SIM_SEED": "seed",
            "SIM_INITIAL_USDC": "initial_usdc",
            "SIM_INTEGRATION_STEPS": "integration_steps",
            "MARKET_GATEWAY_URL": "gateway_url",
        }
        for env_name, key in env_map.items():
            value = os.getenv(env_name)
            if value not in (None, ""):
                data[key] = value

        try:
            for key in ("markets", "total_ticks", "report_interval", "seed", "integration_steps"):
                if key in data:
                    data[key] = int(data[key])
        except ValueError as exc:
            raise InvalidConfigurationError(f"bad SIM_* environment value: {exc}") from exc

        data.update(overrides or {})
        return cls.from_dict(data)
