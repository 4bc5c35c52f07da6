from enum import Enum


class ErrorKind(str, Enum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    MARKET_HALTED = "market_halted"
    STATE_FETCH_FAILURE = "state_fetch_failure"
    INVALID_CONFIGURATION = "invalid_configuration"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    SUBMISSION_FAILURE = "submission_failure"
    STRATEGY_ERROR = "strategy_error"


class SimulationError(Exception):
    """
    Base error for the simulator. Every subclass carries the ErrorKind
    the portfolio tracker counts it under.
    """

    kind: ErrorKind = ErrorKind.SUBMISSION_FAILURE

    def __init__(self, message: str = "", kind: ErrorKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class InsufficientBalanceError(SimulationError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class SlippageExceededError(SimulationError):
    kind = ErrorKind.SLIPPAGE_EXCEEDED


class MarketHaltedError(SimulationError):
    kind = ErrorKind.MARKET_HALTED


class StateFetchError(SimulationError):
    kind = ErrorKind.STATE_FETCH_FAILURE


class InvalidConfigurationError(SimulationError):
    kind = ErrorKind.INVALID_CONFIGURATION


class InsufficientLiquidityError(SimulationError):
    kind = ErrorKind.INSUFFICIENT_LIQUIDITY


class SubmissionError(SimulationError):
    kind = ErrorKind.SUBMISSION_FAILURE
