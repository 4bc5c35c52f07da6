# =============================================================================
# INTEGRATION TESTS - FULL SIMULATION RUN
# =============================================================================

import asyncio
from unittest.mock import MagicMock

import pytest

from core.config import SimulationConfig
from core.reporting import CollectingReportSink
from core.gateway import SimulatedMarketGateway
from core.simulation import build_simulation, market_summary, run_simulation
from data.http_gateway import HttpMarketGateway
from engine.errors import InvalidConfigurationError


def _config(**overrides):
    data = {
        "markets": [
            {"market_id": "m1", "team_a_supply": 400, "team_b_supply": 250, "pool_value": 8000},
            {
                "market_id": "m2",
                "team_a_supply": 50,
                "team_b_supply": 60,
                "pool_value": 3000,
                "curve": {"kind": "linear", "base_price": 0.5, "slope": 0.001, "step_unit": 1},
            },
        ],
        "total_ticks": 25,
        "report_interval": 5,
        "seed": 42,
        "integration_steps": 200,
    }
    data.update(overrides)
    return SimulationConfig.from_dict(data)


class TestSimulationRun:
    """Seeded end-to-end runs of the default population."""

    def test_run_report_shape(self):
        sink = CollectingReportSink()
        report = run_simulation(_config(), sink=sink)

        assert report["event"] == "run"
        assert report["ticks"] == 25
        assert len(sink.of_type("tick")) == 5
        assert len(report["per_agent_metrics"]) == 11
        assert {row["kind"] for row in report["by_kind"]} == {
            "market_maker", "intelligent_market_maker", "arbitrageur", "momentum", "whale", "retail",
        }
        assert set(report["markets"]) == {"m1", "m2"}

    def test_counters_and_balances_stay_consistent(self):
        config = _config()
        scheduler, gateway = build_simulation(config, sink=CollectingReportSink())
        asyncio.run(scheduler.run(config.total_ticks))

        for agent in scheduler.agents:
            s = agent.tracker.state
            assert s.successful + s.failed <= s.trades_executed
            assert s.usdc >= -1e-9
            for pos in s.positions.values():
                assert pos.tokens_a >= -1e-9
                assert pos.tokens_b >= -1e-9

        assert len(scheduler.trades) == sum(a.tracker.state.successful for a in scheduler.agents)

    def test_pool_equals_initial_plus_net_flow(self):
        config = _config()
        scheduler, gateway = build_simulation(config, sink=CollectingReportSink())
        asyncio.run(scheduler.run(config.total_ticks))

        for mid in gateway.market_ids:
            buys = sum(t.usdc_amount for t in scheduler.trades if t.market_id == mid and t.side == "buy")
            sells = sum(t.usdc_amount for t in scheduler.trades if t.market_id == mid and t.side == "sell")
            market = gateway.current(mid)
            assert market.pool_value == pytest.approx(gateway.initial_pool[mid] + buys - sells)
            assert market.pool_value >= 0
            assert market.team_a_supply >= 0
            assert market.team_b_supply >= 0

    def test_same_seed_same_trades(self):
        first = run_simulation(_config(), sink=CollectingReportSink())
        second = run_simulation(_config(), sink=CollectingReportSink())
        assert first["total_trades"] == second["total_trades"]
        assert first["markets"] == second["markets"]

    def test_open_ended_run_needs_scheduler(self):
        with pytest.raises(InvalidConfigurationError):
            run_simulation(_config(total_ticks=None))


def _remote_session(pool_value=2500):
    session = MagicMock()
    market = MagicMock(status_code=200)
    market.json.return_value = {
        "market_id": "m1",
        "team_a_supply": 120,
        "team_b_supply": 80,
        "pool_value": pool_value,
        "curve": {"kind": "power", "k": 0.0001, "n": 2},
    }
    rejected = MagicMock(status_code=409)
    rejected.json.return_value = {"success": False, "error_kind": "slippage_exceeded", "message": "moved"}
    session.get.return_value = market
    session.post.return_value = rejected
    return session


class TestRemoteGateway:
    """Runs wired to a remote market service."""

    def test_in_process_by_default(self):
        _, gateway = build_simulation(_config(), sink=CollectingReportSink())
        assert isinstance(gateway, SimulatedMarketGateway)

    def test_gateway_url_selects_http_gateway(self):
        config = _config(markets=[{"market_id": "m1"}], gateway_url="http://markets.test:8080/")
        scheduler, gateway = build_simulation(config, sink=CollectingReportSink())

        assert isinstance(gateway, HttpMarketGateway)
        assert gateway.base_url == "http://markets.test:8080"
        assert scheduler.market_ids == ["m1"]

    def test_run_against_remote_markets(self):
        config = _config(
            markets=[{"market_id": "m1"}],
            population={"whale": 1},
            agent_params={"whale": {"frequency": 1.0, "min_trade": 5, "max_trade": 5}},
            gateway_url="http://markets.test:8080",
            total_ticks=2,
        )
        scheduler, gateway = build_simulation(config, sink=CollectingReportSink())
        gateway.session = _remote_session()

        report = asyncio.run(scheduler.run(config.total_ticks))

        gateway.session.get.assert_called_with("http://markets.test:8080/markets/m1", timeout=gateway.timeout)
        assert report["total_trades"] == 0
        summary = market_summary(scheduler, gateway)
        assert summary["m1"]["pool_value"] == 2500
        assert summary["m1"]["initial_pool_value"] == 2500

    def test_summary_skips_markets_never_fetched(self):
        config = _config(markets=[{"market_id": "m1"}], gateway_url="http://markets.test:8080")
        scheduler, gateway = build_simulation(config, sink=CollectingReportSink())
        assert market_summary(scheduler, gateway) == {}
