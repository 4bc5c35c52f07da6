import asyncio
import os
from typing import Any, Dict

import requests
from dotenv import load_dotenv

from engine.errors import ErrorKind, InvalidConfigurationError, StateFetchError, SubmissionError
from engine.models import BoundedOrder, ExecutionResult, MarketStateSnapshot
from core.config import parse_curve

# Load .env from repo root
load_dotenv()

DEFAULT_BASE_URL = os.getenv("MARKET_GATEWAY_URL", "http://localhost:8080")
DEFAULT_TIMEOUT = float(os.getenv("MARKET_GATEWAY_TIMEOUT", "10"))


def _snapshot_from_json(market_id: str, data: Dict[str, Any]) -> MarketStateSnapshot:
    """
    Accepts:
      {"market_id": ..., "team_a_supply": ..., "team_b_supply": ...,
       "pool_value": ..., "halted": bool, "curve": {"kind": ..., ...}}
    """
    return MarketStateSnapshot(
        market_id=str(data.get("market_id", market_id)),
        team_a_supply=float(data["team_a_supply"]),
        team_b_supply=float(data["team_b_supply"]),
        pool_value=float(data["pool_value"]),
        curve=parse_curve(data.get("curve")),
        halted=bool(data.get("halted", False)),
    )


def _order_to_json(order: BoundedOrder) -> Dict[str, Any]:
    intent = order.intent
    return {
        "side": intent.side.value,
        "team": intent.team.value,
        "amount": intent.amount,
        "slippage_bps": intent.slippage_bps,
        "expected": order.expected,
        "min_acceptable": order.min_acceptable,
    }


def _result_from_json(data: Dict[str, Any]) -> ExecutionResult:
    if data.get("success"):
        return ExecutionResult.filled(
            float(data["realized_amount"]),
            usdc_amount=float(data.get("usdc_amount", 0.0)),
            token_amount=float(data.get("token_amount", 0.0)),
        )

    raw_kind = data.get("error_kind")
    try:
        kind = ErrorKind(raw_kind)
    except ValueError:
        kind = ErrorKind.SUBMISSION_FAILURE
    return ExecutionResult.rejected(kind, str(data.get("message", raw_kind or "")))


class HttpMarketGateway:
    """
    Market gateway backed by a remote market service:

      GET  {base_url}/markets/<market_id>
      POST {base_url}/markets/<market_id>/orders

    Blocking requests calls run in a worker thread so the scheduler's
    event loop keeps going.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = DEFAULT_TIMEOUT if timeout is None else float(timeout)
        self.session = session or requests.Session()

    async def fetch_market_state(self, market_id: str) -> MarketStateSnapshot:
        return await asyncio.to_thread(self._fetch, market_id)

    async def submit_order(self, market_id: str, order: BoundedOrder) -> ExecutionResult:
        return await asyncio.to_thread(self._submit, market_id, order)

    # ---- helpers ----

    def _fetch(self, market_id: str) -> MarketStateSnapshot:
        url = f"{self.base_url}/markets/{market_id}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise StateFetchError(f"GET {url} failed: {exc}") from exc

        try:
            return _snapshot_from_json(market_id, data)
        except (KeyError, TypeError, ValueError, InvalidConfigurationError) as exc:
            raise StateFetchError(f"malformed market state from {url}: {exc}") from exc

    def _submit(self, market_id: str, order: BoundedOrder) -> ExecutionResult:
        url = f"{self.base_url}/markets/{market_id}/orders"
        try:
            resp = self.session.post(url, json=_order_to_json(order), timeout=self.timeout)
        except requests.RequestException as exc:
            raise SubmissionError(f"POST {url} failed: {exc}") from exc

        # Rejections come back as 4xx with an ExecutionResult body
        try:
            data = resp.json()
        except ValueError as exc:
            raise SubmissionError(f"POST {url} returned {resp.status_code} without JSON") from exc

        if resp.status_code >= 500:
            raise SubmissionError(f"POST {url} returned {resp.status_code}: {data}")
        try:
            return _result_from_json(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SubmissionError(f"malformed order result from {url}: {exc}") from exc
