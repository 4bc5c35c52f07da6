from __future__ import annotations

import argparse
import asyncio
import json
import signal
from pathlib import Path

from core.config import SimulationConfig
from core.simulation import build_simulation, market_summary


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Run the agent trading simulation against bonding-curve markets."
    )
    p.add_argument(
        "--config",
        help="Optional JSON config file (see SimulationConfig.from_dict).",
    )
    p.add_argument("--ticks", type=int, help="Number of ticks; 0 runs until Ctrl+C.")
    p.add_argument("--interval", type=float, help="Seconds between ticks.")
    p.add_argument("--markets", type=int, help="Number of random markets (replaces any markets from --config).")
    p.add_argument("--seed", type=int, help="Seed for population and market randomness.")
    p.add_argument(
        "--gateway-url",
        help="Trade against a remote market service instead of in-process markets (defaults to MARKET_GATEWAY_URL).",
    )
    p.add_argument(
        "--report-every",
        type=int,
        help="Emit a tick report every N ticks.",
    )
    p.add_argument("--verbose", action="store_true", help="Print every order result.")
    p.add_argument("--out", help="Optional path for the final run report (JSON).")
    return p.parse_args()


def _load_config(args: argparse.Namespace) -> SimulationConfig:
    overrides = {}
    if args.config:
        with open(args.config) as f:
            overrides.update(json.load(f))
    if args.markets is not None:
        overrides["markets"] = args.markets
    if args.ticks is not None:
        overrides["total_ticks"] = args.ticks or None
    if args.interval is not None:
        overrides["tick_interval"] = args.interval
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.report_every is not None:
        overrides["report_interval"] = args.report_every
    if args.gateway_url:
        overrides["gateway_url"] = args.gateway_url
    return SimulationConfig.from_env(overrides)


async def _run(config: SimulationConfig, verbose: bool):
    scheduler, gateway = build_simulation(config, verbose=verbose)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, scheduler.stop)
    except NotImplementedError:
        # Windows event loops: fall back to KeyboardInterrupt
        pass

    report = await scheduler.run(config.total_ticks)
    report["markets"] = market_summary(scheduler, gateway)
    return report


def main() -> None:
    args = _parse_args()
    config = _load_config(args)

    print(
        f"[run_simulation] {len(config.markets)} markets, "
        f"population={ {k.value: v for k, v in config.population.items()} }"
    )
    report = asyncio.run(_run(config, args.verbose))

    for mid, m in report["markets"].items():
        print(
            f"[run_simulation] {mid}: pool ${m['initial_pool_value']:.2f} -> ${m['pool_value']:.2f}, "
            f"supply A={m['team_a_supply']:.2f} B={m['team_b_supply']:.2f}"
        )

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w") as f:
            json.dump(report, f, indent=2, default=str)
        print(f"[run_simulation] wrote report -> {out_path}")


if __name__ == "__main__":
    main()
