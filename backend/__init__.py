"""Flask application factory for Underground Gas Detection & Alerting."""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask

import config
from alert_system import AlertManager, FanOutNotificationSink, LoggingNotificationSink
from backend.alerts import DatabaseNotificationSink
from backend.db import db, init_db
from backend.routes_gas import gas_bp
from backend.routes_operator import operator_bp
from monitor_engine import GasMonitoringEngine


def create_app(test_config: Optional[dict] = None, engine: Optional[GasMonitoringEngine] = None):
    app = Flask(__name__)
    app.config.from_object(config)
    if test_config:
        app.config.update(test_config)
    db.init_app(app)
    logging.basicConfig(
        level=logging.INFO,
        format=config.LOG_FORMAT,
    )
    with app.app_context():
        init_db()

    sink = FanOutNotificationSink([LoggingNotificationSink(), DatabaseNotificationSink(app)])
    if engine is None:
        engine = GasMonitoringEngine(alert_manager=AlertManager(sink=sink))
    else:
        engine.alert_manager.sink = FanOutNotificationSink([engine.alert_manager.sink, DatabaseNotificationSink(app)])
    app.extensions["gas_engine"] = engine

    app.register_blueprint(gas_bp, url_prefix="/gas")
    app.register_blueprint(operator_bp, url_prefix="/operator")

    @app.route("/healthz")
    def healthz():
        return {"status": "ok", "engine": engine.state.value}

    logging.info("Gas status:      http://localhost:5000/gas/status")
    logging.info("Operator alerts: http://localhost:5000/operator/alerts")

    return app
