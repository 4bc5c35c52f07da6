import asyncio
from dataclasses import replace
from typing import Dict, Iterable, List, Protocol

from engine.curve import CurvePricingEngine, validate_curve
from engine.errors import ErrorKind, StateFetchError
from engine.models import (
    BoundedOrder,
    ExecutionResult,
    MarketStateSnapshot,
    Side,
)


class MarketGateway(Protocol):
    async def fetch_market_state(self, market_id: str) -> MarketStateSnapshot:
        ...

    async def submit_order(self, market_id: str, order: BoundedOrder) -> ExecutionResult:
        ...


class SimulatedMarketGateway:
    """
    In-process bonding-curve market.

    Each submission is checked and applied without yielding to the event
    loop, so the slippage bound is evaluated against the supply the fill
    actually executes at. Rejected orders leave the market untouched.
    """

    def __init__(
        self,
        markets: Iterable[MarketStateSnapshot],
        pricing: CurvePricingEngine | None = None,
        latency: float = 0.0,
        verbose: bool = False,
    ):
        self.pricing = pricing or CurvePricingEngine()
        self.latency = float(latency)
        self.verbose = verbose

        self._markets: Dict[str, MarketStateSnapshot] = {}
        for m in markets:
            validate_curve(m.curve)
            self._markets[m.market_id] = m
        self.initial_pool: Dict[str, float] = {
            mid: m.pool_value for mid, m in self._markets.items()
        }

    @property
    def market_ids(self) -> List[str]:
        return list(self._markets)

    def current(self, market_id: str) -> MarketStateSnapshot:
        return self._markets[market_id]

    def set_halted(self, market_id: str, halted: bool = True) -> None:
        self._markets[market_id] = replace(self._markets[market_id], halted=halted)

    async def fetch_market_state(self, market_id: str) -> MarketStateSnapshot:
        if self.latency:
            await asyncio.sleep(self.latency)
        market = self._markets.get(market_id)
        if market is None:
            raise StateFetchError(f"unknown market {market_id}")
        return market

    async def submit_order(self, market_id: str, order: BoundedOrder) -> ExecutionResult:
        if self.latency:
            await asyncio.sleep(self.latency)
        result = self._execute(market_id, order)
        if self.verbose:
            intent = order.intent
            status = "filled" if result.success else f"rejected ({result.error_kind.value})"
            print(
                f"[gateway] {market_id} {intent.side.value} {intent.team.value} "
                f"{intent.amount:.4f} -> {status}"
            )
        return result

    # ---- helpers ----

    def _execute(self, market_id: str, order: BoundedOrder) -> ExecutionResult:
        market = self._markets.get(market_id)
        if market is None:
            return ExecutionResult.rejected(ErrorKind.SUBMISSION_FAILURE, f"unknown market {market_id}")
        if market.halted:
            return ExecutionResult.rejected(ErrorKind.MARKET_HALTED, "trading halted")

        intent = order.intent
        if intent.amount <= 0:
            return ExecutionResult.rejected(ErrorKind.SUBMISSION_FAILURE, "amount must be positive")

        supply = market.supply(intent.team)

        if intent.side is Side.BUY:
            tokens = self.pricing.tokens_out(intent.amount, supply, market.curve)
            if tokens < order.min_acceptable:
                return ExecutionResult.rejected(
                    ErrorKind.SLIPPAGE_EXCEEDED,
                    f"tokens out {tokens} < min {order.min_acceptable}",
                )
            usdc = intent.amount
            realized = tokens
        else:
            if intent.amount > supply:
                return ExecutionResult.rejected(
                    ErrorKind.INSUFFICIENT_LIQUIDITY,
                    f"sell {intent.amount} exceeds supply {supply}",
                )
            usdc = self.pricing.usdc_out(intent.amount, supply, market.curve)
            if usdc < order.min_acceptable:
                return ExecutionResult.rejected(
                    ErrorKind.SLIPPAGE_EXCEEDED,
                    f"usdc out {usdc} < min {order.min_acceptable}",
                )
            if usdc > market.pool_value:
                return ExecutionResult.rejected(
                    ErrorKind.INSUFFICIENT_LIQUIDITY,
                    f"payout {usdc} exceeds pool {market.pool_value}",
                )
            tokens = intent.amount
            realized = usdc

        self._markets[market_id] = market.with_fill(intent.side, intent.team, usdc, tokens)
        return ExecutionResult.filled(realized, usdc_amount=usdc, token_amount=tokens)
