import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from engine.curve import team_price
from engine.errors import ErrorKind, SimulationError
from engine.metrics import compute_agent_metrics, summarize_by_kind
from engine.models import (
    ExecutionResult,
    MarketStateSnapshot,
    OrderIntent,
    Team,
    Trade,
)
from .gateway import MarketGateway
from .population import TradingAgent
from .reporting import PrintReportSink, ReportSink


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EVALUATING = "evaluating"
    SUBMITTING = "submitting"
    AGGREGATING = "aggregating"
    STOPPED = "stopped"


class TickScheduler:
    """
    Drives the simulation one tick at a time.

    Per tick: every market is fetched once and every agent evaluates every
    market against that snapshot. Then intents are bounded and submitted
    and results are folded into the owning agent's tracker. Agents submit
    concurrently; one agent walks its markets in order so its tracker
    only ever has one writer.
    """

    def __init__(
        self,
        gateway: MarketGateway,
        agents: Sequence[TradingAgent],
        market_ids: Sequence[str],
        sink: ReportSink | None = None,
        tick_interval: float = 0.0,
        report_interval: int = 5,
        verbose: bool = False,
    ):
        self.gateway = gateway
        self.agents = list(agents)
        self.market_ids = list(market_ids)
        self.sink = sink or PrintReportSink()
        self.tick_interval = float(tick_interval)
        self.report_interval = int(report_interval)
        self.verbose = verbose

        self.state = SchedulerState.IDLE
        self.tick = 0
        self.trades: List[Trade] = []
        self._stop_requested = False
        self._locks: Dict[Tuple[str, Team], asyncio.Lock] = {}
        # Last good snapshot and first seen pool per market
        self.latest: Dict[str, MarketStateSnapshot] = {}
        self.opening_pool: Dict[str, float] = {}

    def stop(self) -> None:
        """Finish the tick in progress, then stop."""
        self._stop_requested = True

    async def run(self, total_ticks: Optional[int] = None) -> Dict[str, Any]:
        self.state = SchedulerState.RUNNING
        print(
            f"[scheduler] starting: {len(self.agents)} agents, "
            f"{len(self.market_ids)} markets, ticks={total_ticks or 'until stopped'}"
        )

        while not self._stop_requested:
            if total_ticks is not None and self.tick >= total_ticks:
                break
            await self.run_tick()
            if self._stop_requested or (total_ticks is not None and self.tick >= total_ticks):
                break
            await asyncio.sleep(self.tick_interval)

        self.state = SchedulerState.STOPPED
        report = self.run_report()
        self._emit(report)
        return report

    async def run_tick(self) -> None:
        self.tick += 1

        self.state = SchedulerState.EVALUATING
        snapshots = await self._fetch_markets()
        decisions = [self._evaluate(agent, snapshots) for agent in self.agents]

        self.state = SchedulerState.SUBMITTING
        await asyncio.gather(
            *(self._submit_all(agent, plan) for agent, plan in zip(self.agents, decisions))
        )

        self.state = SchedulerState.AGGREGATING
        self._mark_equity(snapshots)
        if self.report_interval > 0 and self.tick % self.report_interval == 0:
            self._emit(self.tick_report())

        self.state = SchedulerState.RUNNING

    # -------------------------
    # Reports
    # -------------------------

    def agent_rows(self) -> List[Dict[str, Any]]:
        return [
            compute_agent_metrics(
                agent.agent_id,
                agent.kind.value,
                agent.tracker.state,
                agent.equity_curve,
            )
            for agent in self.agents
        ]

    def tick_report(self) -> Dict[str, Any]:
        return {
            "event": "tick",
            "tick": self.tick,
            "total_trades": len(self.trades),
            "per_agent_metrics": self.agent_rows(),
        }

    def run_report(self) -> Dict[str, Any]:
        rows = self.agent_rows()
        by_kind = summarize_by_kind(rows)
        return {
            "event": "run",
            "ticks": self.tick,
            "total_trades": len(self.trades),
            "per_agent_metrics": rows,
            "by_kind": by_kind.to_dict(orient="records"),
        }

    # -------------------------
    # Internal helpers
    # -------------------------

    async def _fetch_markets(self) -> Dict[str, Optional[MarketStateSnapshot]]:
        results = await asyncio.gather(
            *(self.gateway.fetch_market_state(mid) for mid in self.market_ids),
            return_exceptions=True,
        )

        snapshots: Dict[str, Optional[MarketStateSnapshot]] = {}
        for mid, res in zip(self.market_ids, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                print(f"[scheduler] tick {self.tick}: fetch failed for {mid}: {res}")
                snapshots[mid] = None
            else:
                snapshots[mid] = res
                self.latest[mid] = res
                self.opening_pool.setdefault(mid, res.pool_value)
        return snapshots

    def _evaluate(
        self,
        agent: TradingAgent,
        snapshots: Dict[str, Optional[MarketStateSnapshot]],
    ) -> List[Tuple[MarketStateSnapshot, List[OrderIntent]]]:
        plan: List[Tuple[MarketStateSnapshot, List[OrderIntent]]] = []
        for mid in self.market_ids:
            market = snapshots.get(mid)
            if market is None:
                agent.tracker.record_error(ErrorKind.STATE_FETCH_FAILURE)
                continue
            if market.halted:
                agent.tracker.record_error(ErrorKind.MARKET_HALTED)
                continue

            try:
                intents = agent.decide(market)
            except Exception as exc:
                print(f"[scheduler] {agent.agent_id} decide failed on {mid}: {exc!r}")
                agent.tracker.record_error(ErrorKind.STRATEGY_ERROR)
                continue

            if intents:
                plan.append((market, intents))
        return plan

    async def _submit_all(
        self,
        agent: TradingAgent,
        plan: List[Tuple[MarketStateSnapshot, List[OrderIntent]]],
    ) -> None:
        for market, intents in plan:
            # Later intents are bounded against our own earlier fills
            view = market
            for intent in intents:
                view = await self._submit(agent, view, intent)

    async def _submit(
        self,
        agent: TradingAgent,
        market: MarketStateSnapshot,
        intent: OrderIntent,
    ) -> MarketStateSnapshot:
        mid = market.market_id
        if not agent.tracker.can_afford(mid, intent):
            agent.tracker.record_error(ErrorKind.INSUFFICIENT_BALANCE)
            return market

        order = agent.guard.bound_order(intent, market)
        price_before = team_price(market, intent.team)
        agent.tracker.record_attempt()

        async with self._lock(mid, intent.team):
            try:
                result = await self.gateway.submit_order(mid, order)
            except SimulationError as exc:
                result = ExecutionResult.rejected(exc.kind, str(exc))
            except Exception as exc:
                print(f"[scheduler] {agent.agent_id} submit failed on {mid}: {exc!r}")
                result = ExecutionResult.rejected(ErrorKind.SUBMISSION_FAILURE, repr(exc))

        agent.tracker.record_result(mid, intent, result)

        if not result.success:
            if self.verbose:
                print(
                    f"[scheduler] {agent.agent_id} {intent.side.value} {intent.team.value} "
                    f"on {mid} failed: {result.error_kind.value}"
                )
            return market

        self.trades.append(
            Trade(
                tick=self.tick,
                agent_id=agent.agent_id,
                market_id=mid,
                side=intent.side.value,
                team=intent.team.value,
                usdc_amount=result.usdc_amount,
                token_amount=result.token_amount,
                price=price_before,
            )
        )
        return market.with_fill(intent.side, intent.team, result.usdc_amount, result.token_amount)

    def _emit(self, event: Dict[str, Any]) -> None:
        try:
            self.sink.emit(event)
        except Exception as exc:
            print(f"[scheduler] tick {self.tick}: report sink failed on {event.get('event')} event: {exc!r}")

    def _lock(self, market_id: str, team: Team) -> asyncio.Lock:
        key = (market_id, team)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _mark_equity(self, snapshots: Dict[str, Optional[MarketStateSnapshot]]) -> None:
        prices = {
            mid: (team_price(m, Team.A), team_price(m, Team.B))
            for mid, m in snapshots.items()
            if m is not None
        }
        for agent in self.agents:
            agent.equity_curve.append(agent.tracker.mark_to_market(prices))
