"""SQLAlchemy models for the operator's alert-tracking store."""

from __future__ import annotations

import datetime as dt

from backend.db import db


def _naive_utcnow():
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class OperatorAlert(db.Model):
    __tablename__ = "operator_alerts"
    id = db.Column(db.Integer, primary_key=True)
    engine_alert_id = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String, nullable=False)  # channel name | emergency
    severity = db.Column(db.String, nullable=False)  # medium | high
    message = db.Column(db.String, nullable=False)
    timestamp = db.Column(db.DateTime, default=_naive_utcnow)
    acknowledged_by = db.Column(db.String, nullable=True)
    acknowledged_at = db.Column(db.DateTime, nullable=True)
    resolved = db.Column(db.Boolean, default=False)
    escalation_flag = db.Column(db.Boolean, default=False)
