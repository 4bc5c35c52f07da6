import asyncio
from typing import Any, Dict, Tuple

from data.http_gateway import HttpMarketGateway
from engine.curve import CurvePricingEngine
from engine.errors import InvalidConfigurationError
from .config import SimulationConfig
from .gateway import MarketGateway, SimulatedMarketGateway
from .population import build_population
from .reporting import PrintReportSink, ReportSink
from .scheduler import TickScheduler


def build_gateway(config: SimulationConfig, pricing: CurvePricingEngine, verbose: bool = False) -> MarketGateway:
    """In-process markets, or the remote market service when gateway_url is set."""
    if config.gateway_url:
        print(f"[simulation] trading against remote markets at {config.gateway_url}")
        return HttpMarketGateway(base_url=config.gateway_url)
    return SimulatedMarketGateway(config.markets, pricing=pricing, verbose=verbose)


def build_simulation(
    config: SimulationConfig,
    sink: ReportSink | None = None,
    verbose: bool = False,
) -> Tuple[TickScheduler, MarketGateway]:
    pricing = CurvePricingEngine(config.integration_steps)
    gateway = build_gateway(config, pricing, verbose)
    agents = build_population(
        counts=config.population,
        params=config.agent_params,
        initial_usdc=config.initial_usdc,
        seed=config.seed,
        pricing=pricing,
        randomize=config.randomize_population,
    )
    scheduler = TickScheduler(
        gateway,
        agents,
        [m.market_id for m in config.markets],
        sink=sink or PrintReportSink(),
        tick_interval=config.tick_interval,
        report_interval=config.report_interval,
        verbose=verbose,
    )
    return scheduler, gateway


def market_summary(scheduler: TickScheduler, gateway: MarketGateway) -> Dict[str, Dict[str, Any]]:
    """
    Closing state per market. In-process markets report their live state;
    remote markets report the last snapshot fetched, and are left out if
    no fetch ever succeeded.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for mid in scheduler.market_ids:
        if isinstance(gateway, SimulatedMarketGateway):
            m = gateway.current(mid)
            initial = gateway.initial_pool[mid]
        elif mid in scheduler.latest:
            m = scheduler.latest[mid]
            initial = scheduler.opening_pool[mid]
        else:
            continue
        out[mid] = {
            "team_a_supply": m.team_a_supply,
            "team_b_supply": m.team_b_supply,
            "pool_value": m.pool_value,
            "initial_pool_value": initial,
            "halted": m.halted,
        }
    return out


async def run_simulation_async(
    config: SimulationConfig,
    sink: ReportSink | None = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    scheduler, gateway = build_simulation(config, sink, verbose)
    report = await scheduler.run(config.total_ticks)
    report["markets"] = market_summary(scheduler, gateway)
    return report


def run_simulation(
    config: SimulationConfig,
    sink: ReportSink | None = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    if config.total_ticks is None:
        raise InvalidConfigurationError("run_simulation needs total_ticks; use TickScheduler.run for open-ended runs")
    return asyncio.run(run_simulation_async(config, sink, verbose))
