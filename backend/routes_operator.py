"""Operator endpoints for the alert-tracking store: listing, acknowledgement, resolution."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backend.alerts import acknowledge_alert, escalate_overdue_emergencies, resolve_alert
from backend.models import OperatorAlert

operator_bp = Blueprint("operator", __name__)


def _valid_id(alert_id) -> bool:
    # bool is an int subclass; JSON true must not match row 1
    return isinstance(alert_id, int) and not isinstance(alert_id, bool)


@operator_bp.route("/alerts", methods=["GET"])
def alerts():
    escalate_overdue_emergencies()
    active = OperatorAlert.query.filter_by(resolved=False).order_by(OperatorAlert.timestamp.desc()).all()
    return jsonify(
        [
            {
                "id": a.id,
                "engine_alert_id": a.engine_alert_id,
                "type": a.source,
                "severity": a.severity,
                "message": a.message,
                "timestamp": a.timestamp.isoformat(),
                "acknowledged_by": a.acknowledged_by,
                "resolved": a.resolved,
                "escalation_flag": a.escalation_flag,
            }
            for a in active
        ]
    )


@operator_bp.route("/ack_alert", methods=["POST"])
def ack_alert():
    payload = request.get_json(silent=True) or {}
    alert_id = payload.get("alert_id")
    operator = payload.get("operator")
    if alert_id is None or not operator:
        return jsonify({"error": "alert_id and operator required"}), 400
    if not _valid_id(alert_id):
        return jsonify({"error": "alert_id must be an integer"}), 400
    if acknowledge_alert(alert_id, operator) is None:
        return jsonify({"error": "alert not found"}), 404
    return jsonify({"message": "acknowledged"})


@operator_bp.route("/resolve_alert", methods=["POST"])
def resolve():
    payload = request.get_json(silent=True) or {}
    alert_id = payload.get("alert_id")
    if alert_id is None:
        return jsonify({"error": "alert_id required"}), 400
    if not _valid_id(alert_id):
        return jsonify({"error": "alert_id must be an integer"}), 400
    if resolve_alert(alert_id) is None:
        return jsonify({"error": "alert not found"}), 404
    return jsonify({"message": "resolved"})
