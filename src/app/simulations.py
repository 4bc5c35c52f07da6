# src/app/simulations.py

from flask import Blueprint, jsonify, request

from core.config import SimulationConfig
from core.population import STRATEGY_REGISTRY
from core.reporting import CollectingReportSink
from core.simulation import run_simulation
from engine.errors import InvalidConfigurationError
from engine.execution import RECOMMENDED_SLIPPAGE_BPS

bp = Blueprint("simulations", __name__)

# Keeps request-driven runs short
MAX_TICKS_PER_REQUEST = 1000


@bp.route("/strategies", methods=["GET"])
def list_strategies():
    return jsonify(
        {
            kind.value: {
                "class": cls.__name__,
                "slippage_bps": RECOMMENDED_SLIPPAGE_BPS[kind],
            }
            for kind, cls in STRATEGY_REGISTRY.items()
        }
    )


@bp.route("/simulations", methods=["POST"])
def create_simulation():
    data = request.get_json(silent=True) or {}

    try:
        config = SimulationConfig.from_dict(data)
    except InvalidConfigurationError as exc:
        return jsonify({"error": str(exc)}), 400

    if config.total_ticks is None or config.total_ticks > MAX_TICKS_PER_REQUEST:
        return jsonify({"error": f"total_ticks must be between 0 and {MAX_TICKS_PER_REQUEST}"}), 400
    if config.gateway_url:
        return jsonify({"error": "remote market gateways are only available from the command line"}), 400

    # No pacing for request-driven runs
    config.tick_interval = 0.0

    sink = CollectingReportSink()
    try:
        report = run_simulation(config, sink=sink)
    except InvalidConfigurationError as exc:
        # Strategy params and population counts are only checked at build time
        return jsonify({"error": str(exc)}), 400

    response = {
        "ticks": report["ticks"],
        "total_trades": report["total_trades"],
        "by_kind": report["by_kind"],
        "agents": report["per_agent_metrics"],
        "markets": report["markets"],
        "tick_reports": len(sink.of_type("tick")),
    }
    return jsonify(response)
