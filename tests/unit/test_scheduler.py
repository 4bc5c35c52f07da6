# =============================================================================
# UNIT TESTS - TICK SCHEDULER
# =============================================================================

import asyncio

import pytest

from conftest import make_market
from core.gateway import SimulatedMarketGateway
from core.population import TradingAgent
from core.reporting import CollectingReportSink
from core.scheduler import SchedulerState, TickScheduler
from engine.errors import ErrorKind, StateFetchError
from engine.models import OrderIntent, Side, StrategyKind, Team
from strategies.strategy import Strategy


class ScriptedStrategy(Strategy):
    """Returns the same intents on every market, every tick."""

    kind = StrategyKind.RETAIL

    def __init__(self, intents=None, fail=False):
        super().__init__()
        self.intents = list(intents or [])
        self.fail = fail
        self.calls = 0

    def on_market(self, market, portfolio, rng):
        self.calls += 1
        if self.fail:
            raise RuntimeError("strategy blew up")
        return list(self.intents)


class FlakyGateway(SimulatedMarketGateway):
    """Fails the first `failures` state fetches."""

    def __init__(self, markets, failures=1):
        super().__init__(markets)
        self.failures = failures

    async def fetch_market_state(self, market_id):
        if self.failures > 0:
            self.failures -= 1
            raise StateFetchError("upstream timeout")
        return await super().fetch_market_state(market_id)


class StateRecorder(ScriptedStrategy):
    """Remembers which scheduler state each evaluation ran in."""

    def __init__(self, intents=None):
        super().__init__(intents)
        self.scheduler = None
        self.seen = []

    def on_market(self, market, portfolio, rng):
        self.seen.append(self.scheduler.state)
        return super().on_market(market, portfolio, rng)


class BrokenSink:
    """Raises on every tick report."""

    def __init__(self):
        self.events = []

    def emit(self, event):
        if event["event"] == "tick":
            raise IOError("report disk full")
        self.events.append(event)


class StopAtTick:
    def __init__(self, stop_at):
        self.stop_at = stop_at
        self.scheduler = None
        self.events = []

    def emit(self, event):
        self.events.append(event)
        if event["event"] == "tick" and event["tick"] >= self.stop_at:
            self.scheduler.stop()


def _buy(amount=10.0, team=Team.A, bps=50):
    return OrderIntent(Side.BUY, team, amount, bps)


def _agent(agent_id, strategy, usdc=1000.0):
    return TradingAgent(agent_id, strategy, initial_usdc=usdc)


def _scheduler(gateway, agents, **kw):
    kw.setdefault("sink", CollectingReportSink())
    return TickScheduler(gateway, agents, gateway.market_ids, **kw)


def _market():
    return make_market(team_a_supply=300, team_b_supply=300, pool_value=1000)


class TestTickLoop:
    """Tests for the tick / report lifecycle."""

    def test_pool_grows_by_filled_buys(self):
        gateway = SimulatedMarketGateway([_market()])
        agent = _agent("a1", ScriptedStrategy([_buy(10.0)]))
        scheduler = _scheduler(gateway, [agent])

        report = asyncio.run(scheduler.run(5))

        assert report["ticks"] == 5
        assert report["total_trades"] == 5
        buys = sum(t.usdc_amount for t in scheduler.trades if t.side == "buy")
        assert gateway.current("m1").pool_value == pytest.approx(1000 + buys)
        assert agent.tracker.state.usdc == pytest.approx(950)
        assert agent.tracker.state.positions["m1"].tokens_a == pytest.approx(
            gateway.current("m1").team_a_supply - 300
        )
        assert scheduler.state is SchedulerState.STOPPED

    def test_report_cadence(self):
        gateway = SimulatedMarketGateway([_market()])
        sink = CollectingReportSink()
        scheduler = _scheduler(gateway, [_agent("a1", ScriptedStrategy())], sink=sink, report_interval=5)

        asyncio.run(scheduler.run(10))

        assert [e["tick"] for e in sink.of_type("tick")] == [5, 10]
        assert len(sink.of_type("run")) == 1
        run = sink.of_type("run")[0]
        assert run["by_kind"][0]["kind"] == "retail"
        assert run["per_agent_metrics"][0]["agent_id"] == "a1"

    def test_stop_finishes_current_tick(self):
        gateway = SimulatedMarketGateway([_market()])
        sink = StopAtTick(3)
        scheduler = _scheduler(gateway, [_agent("a1", ScriptedStrategy())], sink=sink, report_interval=1)
        sink.scheduler = scheduler

        report = asyncio.run(scheduler.run())

        assert report["ticks"] == 3
        assert sink.events[-1]["event"] == "run"

    def test_equity_curve_marked_each_tick(self):
        gateway = SimulatedMarketGateway([_market()])
        agent = _agent("a1", ScriptedStrategy())
        asyncio.run(_scheduler(gateway, [agent]).run(4))
        assert agent.equity_curve == [1000.0] * 5


class TestFailureIsolation:
    """One failure never stops the tick for anyone else."""

    def test_halted_market_recorded(self):
        gateway = SimulatedMarketGateway([_market()])
        gateway.set_halted("m1")
        strategy = ScriptedStrategy([_buy()])
        agent = _agent("a1", strategy)

        asyncio.run(_scheduler(gateway, [agent]).run(3))

        assert agent.tracker.state.error_count(ErrorKind.MARKET_HALTED) == 3
        assert agent.tracker.state.trades_executed == 0
        assert strategy.calls == 0

    def test_fetch_failure_skips_one_tick(self):
        gateway = FlakyGateway([_market()], failures=1)
        agent = _agent("a1", ScriptedStrategy([_buy()]))
        scheduler = _scheduler(gateway, [agent])

        asyncio.run(scheduler.run(2))

        assert agent.tracker.state.error_count(ErrorKind.STATE_FETCH_FAILURE) == 1
        assert agent.tracker.state.successful == 1
        assert len(scheduler.trades) == 1

    def test_strategy_error_is_contained(self):
        gateway = SimulatedMarketGateway([_market()])
        broken = _agent("bad", ScriptedStrategy(fail=True))
        healthy = _agent("good", ScriptedStrategy([_buy()]))
        scheduler = _scheduler(gateway, [broken, healthy])

        asyncio.run(scheduler.run(2))

        assert broken.tracker.state.error_count(ErrorKind.STRATEGY_ERROR) == 2
        assert healthy.tracker.state.successful == 2

    def test_insufficient_balance_never_submitted(self):
        gateway = SimulatedMarketGateway([_market()])
        agent = _agent("a1", ScriptedStrategy([_buy(10.0)]), usdc=5.0)

        asyncio.run(_scheduler(gateway, [agent]).run(1))

        assert agent.tracker.state.error_count(ErrorKind.INSUFFICIENT_BALANCE) == 1
        assert agent.tracker.state.trades_executed == 0
        assert gateway.current("m1").pool_value == 1000


class TestConcurrentSubmission:
    """Agents race on one snapshot; an agent's own orders chain."""

    def test_competing_zero_slippage_buys(self):
        gateway = SimulatedMarketGateway([_market()])
        a = _agent("a", ScriptedStrategy([_buy(50.0, bps=0)]))
        b = _agent("b", ScriptedStrategy([_buy(50.0, bps=0)]))

        asyncio.run(_scheduler(gateway, [a, b]).run(1))

        states = [a.tracker.state, b.tracker.state]
        assert sum(s.successful for s in states) == 1
        assert sum(s.error_count(ErrorKind.SLIPPAGE_EXCEEDED) for s in states) == 1
        assert gateway.current("m1").pool_value == pytest.approx(1050)

    def test_own_sequential_buys_both_fill(self):
        gateway = SimulatedMarketGateway([_market()])
        agent = _agent("a", ScriptedStrategy([_buy(50.0, bps=0), _buy(50.0, bps=0)]))

        asyncio.run(_scheduler(gateway, [agent]).run(1))

        assert agent.tracker.state.successful == 2
        assert gateway.current("m1").pool_value == pytest.approx(1100)

    def test_loser_books_no_volume(self):
        gateway = SimulatedMarketGateway([_market()])
        a = _agent("a", ScriptedStrategy([_buy(50.0, bps=0)]))
        b = _agent("b", ScriptedStrategy([_buy(50.0, bps=0)]))

        asyncio.run(_scheduler(gateway, [a, b]).run(1))

        volumes = sorted(s.tracker.state.volume_usdc for s in (a, b))
        assert volumes == [0.0, pytest.approx(50.0)]


class TestSchedulerStates:
    """State transitions and report sink failures."""

    def test_decide_runs_while_evaluating(self):
        gateway = SimulatedMarketGateway([_market(), make_market(market_id="m2")])
        strategy = StateRecorder([_buy()])
        scheduler = _scheduler(gateway, [_agent("a1", strategy)])
        strategy.scheduler = scheduler

        asyncio.run(scheduler.run(2))

        assert strategy.seen == [SchedulerState.EVALUATING] * 4
        assert scheduler.state is SchedulerState.STOPPED

    def test_failing_sink_does_not_abort_run(self, capsys):
        gateway = SimulatedMarketGateway([_market()])
        sink = BrokenSink()
        agent = _agent("a1", ScriptedStrategy([_buy()]))
        scheduler = _scheduler(gateway, [agent], sink=sink, report_interval=1)

        report = asyncio.run(scheduler.run(3))

        assert report["ticks"] == 3
        assert agent.tracker.state.successful == 3
        assert scheduler.state is SchedulerState.STOPPED
        assert [e["event"] for e in sink.events] == ["run"]
        assert "report sink failed on tick event" in capsys.readouterr().out
