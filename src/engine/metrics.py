from typing import Any, Dict, List, Sequence

import pandas as pd

from .portfolio import PortfolioState


def compute_agent_metrics(
    agent_id: str,
    kind: str,
    state: PortfolioState,
    equity_curve: Sequence[float],
) -> Dict[str, Any]:
    attempts = state.trades_executed
    equity = equity_curve[-1] if equity_curve else state.usdc
    initial = equity_curve[0] if equity_curve else state.usdc

    return {
        "agent_id": agent_id,
        "kind": kind,
        "trades_executed": attempts,
        "successful": state.successful,
        "failed": state.failed,
        "success_rate": (state.successful / attempts) if attempts else 0.0,
        "usdc": state.usdc,
        "volume_usdc": state.volume_usdc,
        "realized_pnl": state.realized_pnl,
        "equity": equity,
        "total_pnl": equity - initial,
        "max_drawdown": _max_drawdown(list(equity_curve)) if equity_curve else 0.0,
        "errors": {k.value: v for k, v in state.errors.items()},
        "error_count": state.error_count(),
    }


def summarize_by_kind(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """
    Collapse per-agent metric rows into one row per strategy kind.
    """
    columns = [
        "kind", "agents", "trades_executed", "successful", "failed",
        "success_rate", "volume_usdc", "realized_pnl", "total_pnl",
        "avg_total_pnl", "error_count",
    ]
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows)
    grouped = df.groupby("kind", sort=True).agg(
        agents=("agent_id", "count"),
        trades_executed=("trades_executed", "sum"),
        successful=("successful", "sum"),
        failed=("failed", "sum"),
        volume_usdc=("volume_usdc", "sum"),
        realized_pnl=("realized_pnl", "sum"),
        total_pnl=("total_pnl", "sum"),
        avg_total_pnl=("total_pnl", "mean"),
        error_count=("error_count", "sum"),
    ).reset_index()

    attempts = grouped["trades_executed"].where(grouped["trades_executed"] > 0)
    grouped["success_rate"] = (grouped["successful"] / attempts).fillna(0.0)
    return grouped[columns]


def _max_drawdown(values):
    peak = values[0]
    max_dd = 0
    for v in values:
        peak = max(peak, v)
        max_dd = max(max_dd, peak - v)
    return max_dd
