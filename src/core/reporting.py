from typing import Any, Dict, List, Protocol


class ReportSink(Protocol):
    def emit(self, event: Dict[str, Any]) -> None:
        ...


class CollectingReportSink:
    """Keeps every event in memory."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def emit(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    def of_type(self, name: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("event") == name]


class PrintReportSink:
    def __init__(self, tag: str = "scheduler"):
        self.tag = tag

    def emit(self, event: Dict[str, Any]) -> None:
        name = event.get("event")
        if name == "tick":
            self._print_tick(event)
        elif name == "run":
            self._print_run(event)
        else:
            print(f"[{self.tag}] {event}")

    def _print_tick(self, event: Dict[str, Any]) -> None:
        rows = event.get("per_agent_metrics") or []
        errors = sum(r.get("error_count", 0) for r in rows)
        print(
            f"[{self.tag}] tick {event['tick']}: total_trades={event['total_trades']} "
            f"agents={len(rows)} errors={errors}"
        )

    def _print_run(self, event: Dict[str, Any]) -> None:
        print(
            f"[{self.tag}] run finished after {event['ticks']} ticks: "
            f"total_trades={event['total_trades']}"
        )
        for row in event.get("by_kind") or []:
            print(
                f"[{self.tag}]   {row['kind']:<26} agents={row['agents']:<3} "
                f"trades={row['successful']}/{row['trades_executed']} "
                f"volume=${row['volume_usdc']:.2f} pnl=${row['total_pnl']:.2f}"
            )
