"""Operator alert store: recording pushed alerts, acknowledgement, escalation checks."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from flask import has_app_context

import config
from alert_system import EMERGENCY, Alert, NotificationSink
from backend.db import db
from backend.models import OperatorAlert

logger = logging.getLogger(__name__)


def _naive_utc(timestamp: Optional[float] = None) -> dt.datetime:
    """UTC wall time without tzinfo, matching the stored columns."""
    moment = dt.datetime.now(dt.timezone.utc) if timestamp is None else dt.datetime.fromtimestamp(timestamp, dt.timezone.utc)
    return moment.replace(tzinfo=None)


def record_alert(alert: Alert) -> OperatorAlert:
    """Store an engine alert so an operator can acknowledge and resolve it."""
    row = OperatorAlert(
        engine_alert_id=alert.id,
        source=alert.source,
        severity=alert.severity.value,
        message=alert.message,
        timestamp=_naive_utc(alert.timestamp),
    )
    db.session.add(row)
    db.session.commit()
    return row


def acknowledge_alert(alert_id: int, operator: str) -> Optional[OperatorAlert]:
    row = db.session.get(OperatorAlert, alert_id)
    if row is None:
        return None
    row.acknowledged_by = operator
    row.acknowledged_at = _naive_utc()
    db.session.commit()
    return row


def resolve_alert(alert_id: int) -> Optional[OperatorAlert]:
    row = db.session.get(OperatorAlert, alert_id)
    if row is None:
        return None
    row.resolved = True
    db.session.commit()
    return row


def escalate_overdue_emergencies():
    """
    If an emergency alert is unacknowledged beyond threshold, mark escalation_flag.
    """
    now = _naive_utc()
    overdue = OperatorAlert.query.filter(
        OperatorAlert.source == EMERGENCY,
        OperatorAlert.acknowledged_at.is_(None),
        OperatorAlert.escalation_flag.is_(False),
        OperatorAlert.resolved.is_(False),
    )
    for row in overdue:
        if (now - row.timestamp).total_seconds() > config.ESCALATE_AFTER_SECONDS:
            row.escalation_flag = True
            logger.warning("Emergency alert %s escalated: unacknowledged", row.id)
    db.session.commit()


class DatabaseNotificationSink(NotificationSink):
    """Pushes high-severity engine alerts into the operator store; ticks run outside requests."""

    def __init__(self, app):
        self.app = app

    def notify(self, alert: Alert) -> None:
        if has_app_context():
            record_alert(alert)
            return
        with self.app.app_context():
            record_alert(alert)

    def info(self, message: str) -> None:
        logger.info(message)
