import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ErrorKind
from .models import ExecutionResult, MarketPosition, OrderIntent, Side, Team


@dataclass
class PortfolioState:
    agent_id: str
    usdc: float = 0.0
    trades_executed: int = 0
    successful: int = 0
    failed: int = 0
    positions: Dict[str, MarketPosition] = field(default_factory=dict)
    last_trade: Optional[Dict[str, Any]] = None
    realized_pnl: float = 0.0
    volume_usdc: float = 0.0
    errors: Dict[ErrorKind, int] = field(default_factory=dict)

    def position(self, market_id: str) -> MarketPosition:
        """Position for a market; an empty one if we never traded it."""
        return self.positions.get(market_id) or MarketPosition()

    def tokens(self, market_id: str, team: Team) -> float:
        return self.position(market_id).tokens(team)

    def balances(self, market_id: str) -> Dict[str, float]:
        pos = self.position(market_id)
        return {"usdc": self.usdc, "tokens_a": pos.tokens_a, "tokens_b": pos.tokens_b}

    def error_count(self, kind: ErrorKind | None = None) -> int:
        if kind is None:
            return sum(self.errors.values())
        return self.errors.get(kind, 0)


class PortfolioTracker:
    """
    Single-writer ledger for one agent. Counters only go up; positions
    change only when a result for that market reports success.
    """

    def __init__(self, agent_id: str, initial_usdc: float = 0.0):
        self.state = PortfolioState(agent_id=agent_id, usdc=float(initial_usdc))
        self.initial_usdc = float(initial_usdc)

    def can_afford(self, market_id: str, intent: OrderIntent) -> bool:
        if intent.side is Side.BUY:
            return self.state.usdc >= intent.amount
        return self.state.tokens(market_id, intent.team) >= intent.amount

    def record_attempt(self) -> None:
        self.state.trades_executed += 1

    def record_error(self, kind: ErrorKind) -> None:
        self.state.errors[kind] = self.state.errors.get(kind, 0) + 1

    def record_result(self, market_id: str, intent: OrderIntent, result: ExecutionResult) -> None:
        s = self.state
        if not result.success:
            s.failed += 1
            self.record_error(result.error_kind or ErrorKind.SUBMISSION_FAILURE)
            return

        s.successful += 1
        pos = s.positions.setdefault(market_id, MarketPosition())
        usdc = result.usdc_amount
        tokens = result.token_amount

        if intent.side is Side.BUY:
            s.usdc -= usdc
            if intent.team is Team.A:
                pos.tokens_a += tokens
                pos.cost_a += usdc
            else:
                pos.tokens_b += tokens
                pos.cost_b += usdc
        else:
            s.usdc += usdc
            s.realized_pnl += usdc - self._release_cost(pos, intent.team, tokens)

        s.volume_usdc += usdc
        s.last_trade = {
            "market_id": market_id,
            "side": intent.side,
            "team": intent.team,
            "usdc_amount": usdc,
            "token_amount": tokens,
        }

    def snapshot(self) -> PortfolioState:
        return copy.deepcopy(self.state)

    def mark_to_market(self, prices: Mapping[str, Tuple[float, float]]) -> float:
        """
        Equity = usdc + held tokens at spot. `prices` maps market_id to
        (price_a, price_b); markets without a price are skipped.
        """
        equity = self.state.usdc
        for mid, pos in self.state.positions.items():
            quote = prices.get(mid)
            if quote is None:
                continue
            equity += pos.tokens_a * quote[0] + pos.tokens_b * quote[1]
        return equity

    # ---- helpers ----

    @staticmethod
    def _release_cost(pos: MarketPosition, team: Team, tokens: float) -> float:
        held = pos.tokens(team)
        cost = pos.cost(team)
        share = min(tokens / held, 1.0) if held > 0 else 1.0
        released = cost * share

        if team is Team.A:
            pos.tokens_a = max(held - tokens, 0.0)
            pos.cost_a = cost - released
        else:
            pos.tokens_b = max(held - tokens, 0.0)
            pos.cost_b = cost - released
        return released
