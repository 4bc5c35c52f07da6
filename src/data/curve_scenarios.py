# src/data/curve_scenarios.py
#
# Replays a fixed early / mid / late buying pattern on fresh power curves
# and reports how early buyers fare against late ones.

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from engine.curve import DEFAULT_STEPS, tokens_out, usdc_out, win_payout
from engine.models import CurveParameters

DEFAULT_TRADES: List[Tuple[str, float]] = [
    ("Early Buyer #1", 100.0),
    ("Early Buyer #2", 200.0),
    ("Early Whale", 500.0),
    ("Mid Buyer #1", 1000.0),
    ("Mid Buyer #2", 2000.0),
    ("Mid Whale", 5000.0),
    ("Late FOMO #1", 1000.0),
    ("Late FOMO #2", 2000.0),
    ("Late Whale", 5000.0),
    ("Last $100 Buyer", 100.0),
]

DEFAULT_SCENARIOS: List[Tuple[str, float, float]] = [
    ("Gentle Quadratic", 0.00001, 2.0),
    ("Aggressive Quadratic", 0.0001, 2.0),
    ("Cubic", 0.000001, 3.0),
    ("Power 1.5", 0.001, 1.5),
]


def simulate_buys(
    curve: CurveParameters,
    trades: Sequence[Tuple[str, float]] = DEFAULT_TRADES,
    steps: int = DEFAULT_STEPS,
) -> pd.DataFrame:
    """
    One row per buy, in order. Win payout and sell-now value are taken
    at the final supply / pool, once every buy has landed.
    """
    supply = 0.0
    pool = 0.0
    rows: List[Dict[str, Any]] = []

    for label, usdc in trades:
        received = tokens_out(usdc, supply, curve, steps)
        supply += received
        pool += usdc
        rows.append(
            {
                "label": label,
                "usdc_in": usdc,
                "tokens_out": received,
                "avg_price": usdc / received if received else float("nan"),
                "supply_after": supply,
                "pool_after": pool,
            }
        )

    df = pd.DataFrame(rows)
    if df.empty:
        return df

    df["win_payout"] = [win_payout(t, supply, pool) for t in df["tokens_out"]]
    df["sell_value"] = [usdc_out(t, supply, curve, steps) for t in df["tokens_out"]]
    df["win_roi"] = (df["win_payout"] - df["usdc_in"]) / df["usdc_in"]
    df["sell_roi"] = (df["sell_value"] - df["usdc_in"]) / df["usdc_in"]
    return df


def compare_early_late(df: pd.DataFrame) -> Dict[str, Optional[float]]:
    """
    First vs last buyer, plus the pool volume after which buying loses
    money even on a win (None if that never happens).
    """
    if len(df) < 2:
        return {}

    first = df.iloc[0]
    last = df.iloc[-1]
    first_multiple = first["win_payout"] / first["usdc_in"]
    last_multiple = last["win_payout"] / last["usdc_in"]

    breakeven: Optional[float] = None
    for i in range(1, len(df)):
        if df.iloc[i]["win_payout"] < df.iloc[i]["usdc_in"]:
            breakeven = float(df.iloc[i - 1]["pool_after"])
            break

    return {
        "first_tokens_per_100": float(first["tokens_out"] / first["usdc_in"] * 100),
        "last_tokens_per_100": float(last["tokens_out"] / last["usdc_in"] * 100),
        "first_win_multiple": float(first_multiple),
        "last_win_multiple": float(last_multiple),
        "token_advantage": float(first["tokens_out"] / last["tokens_out"]) if last["tokens_out"] else None,
        "return_advantage": float(first_multiple / last_multiple) if last_multiple else None,
        "breakeven_volume": breakeven,
    }


def run_scenarios(
    scenarios: Sequence[Tuple[str, float, float]] = DEFAULT_SCENARIOS,
    trades: Sequence[Tuple[str, float]] = DEFAULT_TRADES,
    steps: int = DEFAULT_STEPS,
) -> pd.DataFrame:
    rows = []
    for name, k, n in scenarios:
        df = simulate_buys(CurveParameters.power(k, n), trades, steps)
        row = {"scenario": name, "k": k, "n": n}
        row.update(compare_early_late(df))
        rows.append(row)
    return pd.DataFrame(rows)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Compare early and late buyers across bonding curve parameters."
    )
    p.add_argument("--k", type=float, help="Single scenario: price coefficient.")
    p.add_argument("--n", type=float, default=2.0, help="Single scenario: curve exponent.")
    p.add_argument("--steps", type=int, default=DEFAULT_STEPS, help="Integration steps.")
    p.add_argument("--out", type=str, help="Optional CSV path for the summary table.")
    return p.parse_args()


def main() -> None:
    args = _parse_args()

    if args.k is not None:
        scenarios = [(f"k={args.k}, n={args.n}", args.k, args.n)]
        trades_df = simulate_buys(CurveParameters.power(args.k, args.n), steps=args.steps)
        print("[curve_scenarios] trade history:")
        print(trades_df.to_string(index=False))
    else:
        scenarios = DEFAULT_SCENARIOS

    summary = run_scenarios(scenarios, steps=args.steps)
    print("[curve_scenarios] early vs late buyers:")
    print(summary.to_string(index=False))

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        summary.to_csv(out_path, index=False)
        print(f"[curve_scenarios] wrote {len(summary)} rows -> {out_path}")


if __name__ == "__main__":
    main()
