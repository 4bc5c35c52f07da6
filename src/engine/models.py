from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .errors import ErrorKind


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Team(str, Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> "Team":
        return Team.B if self is Team.A else Team.A


class StrategyKind(str, Enum):
    MARKET_MAKER = "market_maker"
    INTELLIGENT_MARKET_MAKER = "intelligent_market_maker"
    ARBITRAGEUR = "arbitrageur"
    MOMENTUM = "momentum"
    WHALE = "whale"
    RETAIL = "retail"


@dataclass(frozen=True)
class CurveParameters:
    kind: str = "power"          # "power" | "linear"
    k: float = 0.0001            # power: price = k * supply**n
    n: float = 2.0
    base_price: float = 0.0      # linear: base + slope * floor(supply / step_unit)
    slope: float = 0.0
    step_unit: float = 1.0

    @classmethod
    def power(cls, k: float, n: float) -> "CurveParameters":
        return cls(kind="power", k=k, n=n)

    @classmethod
    def linear(
        cls, base_price: float, slope: float, step_unit: float = 1.0
    ) -> "CurveParameters":
        return cls(kind="linear", base_price=base_price, slope=slope, step_unit=step_unit)


@dataclass(frozen=True)
class MarketStateSnapshot:
    market_id: str
    team_a_supply: float
    team_b_supply: float
    pool_value: float
    curve: CurveParameters
    halted: bool = False

    def supply(self, team: Team) -> float:
        return self.team_a_supply if team is Team.A else self.team_b_supply

    def with_fill(
        self, side: Side, team: Team, usdc_amount: float, token_amount: float
    ) -> "MarketStateSnapshot":
        """
        Projected snapshot after a fill of our own. The original snapshot
        is left untouched.
        """
        sign = 1.0 if side is Side.BUY else -1.0
        supply = self.supply(team) + sign * token_amount
        pool = self.pool_value + sign * usdc_amount
        if team is Team.A:
            return replace(self, team_a_supply=supply, pool_value=pool)
        return replace(self, team_b_supply=supply, pool_value=pool)


@dataclass(frozen=True)
class OrderIntent:
    side: Side
    team: Team
    amount: float         # BUY: usdc in, SELL: tokens in
    slippage_bps: int


@dataclass(frozen=True)
class BoundedOrder:
    intent: OrderIntent
    expected: float       # BUY: tokens out, SELL: usdc out
    min_acceptable: float


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    realized_amount: Optional[float] = None
    error_kind: Optional[ErrorKind] = None
    usdc_amount: float = 0.0
    token_amount: float = 0.0
    message: str = ""

    @classmethod
    def filled(cls, realized: float, usdc_amount: float, token_amount: float) -> "ExecutionResult":
        return cls(
            success=True,
            realized_amount=realized,
            usdc_amount=usdc_amount,
            token_amount=token_amount,
        )

    @classmethod
    def rejected(cls, kind: ErrorKind, message: str = "") -> "ExecutionResult":
        return cls(success=False, error_kind=kind, message=message)


@dataclass
class MarketPosition:
    tokens_a: float = 0.0
    tokens_b: float = 0.0
    cost_a: float = 0.0   # usdc paid for the tokens still held
    cost_b: float = 0.0

    def tokens(self, team: Team) -> float:
        return self.tokens_a if team is Team.A else self.tokens_b

    def cost(self, team: Team) -> float:
        return self.cost_a if team is Team.A else self.cost_b


@dataclass
class Trade:
    tick: int
    agent_id: str
    market_id: str
    side: str             # "buy" | "sell"
    team: str             # "A" | "B"
    usdc_amount: float
    token_amount: float
    price: float          # spot price before the fill
