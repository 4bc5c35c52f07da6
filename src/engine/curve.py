import math

from .errors import InvalidConfigurationError
from .models import CurveParameters, MarketStateSnapshot, Team

DEFAULT_STEPS = 1000

TOKEN_DECIMALS = 6
USDC_DECIMALS = 2   # payouts are floored to whole cents


def floor_units(value: float, decimals: int) -> float:
    """
    Floor to a fixed number of decimals. The tiny epsilon keeps values
    such as 0.3 * 1e6 = 299999.99999999994 from losing a unit.
    """
    if value <= 0:
        return 0.0
    scale = 10 ** decimals
    return math.floor(value * scale + 1e-6) / scale


def validate_curve(curve: CurveParameters) -> CurveParameters:
    if curve.kind == "power":
        if curve.k <= 0:
            raise InvalidConfigurationError(f"power curve needs k > 0, got {curve.k}")
        if curve.n < 0:
            raise InvalidConfigurationError(f"power curve needs n >= 0, got {curve.n}")
    elif curve.kind == "linear":
        if curve.base_price <= 0:
            raise InvalidConfigurationError(
                f"linear curve needs base_price > 0, got {curve.base_price}"
            )
        if curve.slope < 0:
            raise InvalidConfigurationError(f"linear curve needs slope >= 0, got {curve.slope}")
        if curve.step_unit <= 0:
            raise InvalidConfigurationError(
                f"linear curve needs step_unit > 0, got {curve.step_unit}"
            )
    else:
        raise InvalidConfigurationError(f"unknown curve kind: {curve.kind!r}")
    return curve


# -------------------------
# Pricing
# -------------------------

def price(supply: float, curve: CurveParameters) -> float:
    """
    Marginal price at a given circulating supply. Never below the curve
    floor: k for power curves (any supply under one token quotes k),
    base_price for linear.
    """
    if curve.kind == "linear":
        if supply <= 0:
            return curve.base_price
        return curve.base_price + curve.slope * math.floor(supply / curve.step_unit)

    if supply <= 0:
        return curve.k
    return max(curve.k, curve.k * supply ** curve.n)


def team_price(market: MarketStateSnapshot, team: Team) -> float:
    return price(market.supply(team), market.curve)


def implied_probability(p: float) -> float:
    if p <= 0:
        return 0.0
    return 1.0 / p


def tokens_out(
    usdc_in: float,
    current_supply: float,
    curve: CurveParameters,
    steps: int = DEFAULT_STEPS,
) -> float:
    """
    Tokens minted for usdc_in, integrating in `steps` equal USDC increments.
    Each increment is priced at the supply reached so far.
    """
    if usdc_in <= 0:
        return 0.0

    usdc_per_step = usdc_in / steps
    tokens = 0.0
    for _ in range(steps):
        tokens += usdc_per_step / price(current_supply + tokens, curve)

    return floor_units(tokens, TOKEN_DECIMALS)


def usdc_out(
    tokens_in: float,
    current_supply: float,
    curve: CurveParameters,
    steps: int = DEFAULT_STEPS,
) -> float:
    """
    USDC returned for burning tokens_in, integrating backward from
    current_supply in `steps` equal token increments. Each increment is
    priced at its lower end. Tokens beyond the circulating supply are
    worth nothing.
    """
    tokens_in = min(tokens_in, current_supply)
    if tokens_in <= 0:
        return 0.0

    tokens_per_step = tokens_in / steps
    total = 0.0
    for i in range(1, steps + 1):
        total += tokens_per_step * price(current_supply - tokens_per_step * i, curve)

    return floor_units(total, USDC_DECIMALS)


def win_payout(tokens: float, team_supply: float, pool_value: float) -> float:
    """Share of the pool a winning holder of `tokens` is owed at settlement."""
    if tokens <= 0 or team_supply <= 0:
        return 0.0
    return floor_units(tokens / team_supply * pool_value, USDC_DECIMALS)


def round_trip_value(
    usdc_in: float,
    current_supply: float,
    curve: CurveParameters,
    steps: int = DEFAULT_STEPS,
) -> float:
    """Buy with usdc_in, then immediately sell everything received."""
    received = tokens_out(usdc_in, current_supply, curve, steps)
    return usdc_out(received, current_supply + received, curve, steps)


class CurvePricingEngine:
    """Pricing functions bound to one integration step count."""

    def __init__(self, steps: int = DEFAULT_STEPS):
        if int(steps) < 1:
            raise InvalidConfigurationError(f"steps must be >= 1, got {steps}")
        self.steps = int(steps)

    def price(self, supply: float, curve: CurveParameters) -> float:
        return price(supply, curve)

    def team_price(self, market: MarketStateSnapshot, team: Team) -> float:
        return team_price(market, team)

    def tokens_out(self, usdc_in: float, current_supply: float, curve: CurveParameters) -> float:
        return tokens_out(usdc_in, current_supply, curve, self.steps)

    def usdc_out(self, tokens_in: float, current_supply: float, curve: CurveParameters) -> float:
        return usdc_out(tokens_in, current_supply, curve, self.steps)
