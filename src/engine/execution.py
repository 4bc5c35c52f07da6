from typing import Dict

from .curve import CurvePricingEngine, TOKEN_DECIMALS, USDC_DECIMALS, floor_units
from .errors import InvalidConfigurationError
from .models import (
    BoundedOrder,
    MarketStateSnapshot,
    OrderIntent,
    Side,
    StrategyKind,
)

# Slippage tolerance per agent type, in basis points.
RECOMMENDED_SLIPPAGE_BPS: Dict[StrategyKind, int] = {
    StrategyKind.MARKET_MAKER: 50,
    StrategyKind.INTELLIGENT_MARKET_MAKER: 30,
    StrategyKind.ARBITRAGEUR: 10,
    StrategyKind.RETAIL: 100,
    StrategyKind.MOMENTUM: 200,
    StrategyKind.WHALE: 300,
}

MAX_BPS = 10_000


def validate_slippage(bps) -> int:
    try:
        bps = int(bps)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"slippage must be an integer bps value, got {bps!r}") from None
    if not 0 <= bps <= MAX_BPS:
        raise InvalidConfigurationError(f"slippage must be within 0..{MAX_BPS} bps, got {bps}")
    return bps


class ExecutionGuard:
    """
    Turns an OrderIntent into a BoundedOrder: the output the curve
    promises at the observed supply, and the least the gateway may
    deliver before the order must fail.
    """

    def __init__(self, pricing: CurvePricingEngine | None = None):
        self.pricing = pricing or CurvePricingEngine()

    def expected_output(self, intent: OrderIntent, market: MarketStateSnapshot) -> float:
        supply = market.supply(intent.team)
        if intent.side is Side.BUY:
            return self.pricing.tokens_out(intent.amount, supply, market.curve)
        return self.pricing.usdc_out(intent.amount, supply, market.curve)

    def bound_order(self, intent: OrderIntent, market: MarketStateSnapshot) -> BoundedOrder:
        bps = validate_slippage(intent.slippage_bps)
        expected = self.expected_output(intent, market)
        decimals = TOKEN_DECIMALS if intent.side is Side.BUY else USDC_DECIMALS
        min_acceptable = min_acceptable_output(expected, bps, decimals)
        return BoundedOrder(intent=intent, expected=expected, min_acceptable=min_acceptable)


def min_acceptable_output(expected: float, slippage_bps: int, decimals: int = TOKEN_DECIMALS) -> float:
    return floor_units(expected * (MAX_BPS - slippage_bps) / MAX_BPS, decimals)
