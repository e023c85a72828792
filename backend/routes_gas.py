"""Gas monitoring endpoints: engine control, live status, alert feed, emergency broadcast."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from alert_system import Alert
from channels import display_name
from decision_engine import Prediction, SafetyVerdict
from monitor_engine import GasMonitoringEngine

gas_bp = Blueprint("gas", __name__)


def _engine() -> GasMonitoringEngine:
    return current_app.extensions["gas_engine"]


def verdict_payload(verdict: SafetyVerdict, engine: GasMonitoringEngine) -> dict:
    cfg = engine.configs[verdict.channel]
    reading = engine.readings.get(verdict.channel)
    return {
        "channel": verdict.channel.value,
        "name": display_name(verdict.channel),
        "unit": cfg.unit,
        "value": verdict.value,
        "safe": verdict.safe,
        "status": verdict.status,
        "limit": list(verdict.limit) if isinstance(verdict.limit, tuple) else verdict.limit,
        "limit_label": cfg.limit_label(),
        "breach": verdict.breach,
        "fault": verdict.fault,
        "stale": bool(reading.stale) if reading is not None else False,
        "progress": cfg.progress(verdict.value) if verdict.value is not None else None,
    }


def prediction_payload(prediction: Prediction) -> dict:
    return {
        "risk_level": prediction.risk_level.value,
        "forecast": prediction.forecast,
        "recommended_actions": list(prediction.recommended_actions),
        "unsafe_count": prediction.unsafe_count,
    }


def alert_payload(alert: Alert) -> dict:
    return {
        "id": alert.id,
        "type": alert.source,
        "message": alert.message,
        "timestamp": alert.timestamp,
        "severity": alert.severity.value,
    }


@gas_bp.route("/status", methods=["GET"])
def status():
    engine = _engine()
    return jsonify(
        {
            "state": engine.state.value,
            "verdicts": [verdict_payload(v, engine) for v in engine.verdicts.values()],
            "prediction": prediction_payload(engine.prediction),
        }
    )


@gas_bp.route("/alerts", methods=["GET"])
def alerts():
    return jsonify([alert_payload(a) for a in _engine().alerts])


@gas_bp.route("/start", methods=["POST"])
def start():
    engine = _engine()
    engine.start()
    return jsonify({"state": engine.state.value})


@gas_bp.route("/stop", methods=["POST"])
def stop():
    engine = _engine()
    engine.stop()
    return jsonify({"state": engine.state.value})


@gas_bp.route("/emergency", methods=["POST"])
def emergency():
    payload = request.get_json(silent=True) or {}
    initiator = payload.get("initiator")
    if not isinstance(initiator, str) or not initiator.strip():
        return jsonify({"error": "initiator required"}), 400
    alert = _engine().trigger_emergency(initiator.strip())
    return jsonify(alert_payload(alert)), 201
