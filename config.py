"""
Global configuration for the Underground Gas Detection & Alerting engine.
Adjust CHANNEL_LIMITS here if a site uses different exposure limits.
"""

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_PATH = os.path.join(BASE_DIR, "gas_alerts.db")
SQLALCHEMY_DATABASE_URI = f"sqlite:///{DB_PATH}"
SQLALCHEMY_TRACK_MODIFICATIONS = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Seconds between engine ticks
TICK_INTERVAL_SECONDS = float(os.environ.get("GAS_TICK_INTERVAL", "3.0"))

# Alert feed keeps only the most recent entries
ALERT_LOG_CAPACITY = 10

# "probabilistic" (reference behaviour) or "cooldown"
ALERT_POLICY = os.environ.get("GAS_ALERT_POLICY", "probabilistic")

# Chance that an unsafe channel raises an alert on a given tick
ALERT_PROBABILITY = 0.3

# Minimum seconds between alerts for one channel under the cooldown policy
ALERT_COOLDOWN = 30

# value > factor * limit => high severity
HIGH_SEVERITY_FACTOR = 1.5

# Per-channel read timeout for hardware feeds
SENSOR_TIMEOUT_SECONDS = 1.0

# Escalation threshold for unacknowledged emergency alerts in the operator store
ESCALATE_AFTER_SECONDS = 60

# Per-channel limits. Either "threshold" (safe below) or "safe_range" (safe strictly inside).
CHANNEL_LIMITS = {
    "methane": {
        "unit": "%",
        "threshold": 1.0,
        "domain": (0.0, 5.0),
        "step": 0.15,
        "initial": 0.0,
    },
    "carbon_monoxide": {
        "unit": "ppm",
        "threshold": 50.0,
        "domain": (0.0, 500.0),
        "step": 2.5,
        "initial": 0.0,
    },
    "hydrogen": {
        "unit": "%",
        "threshold": 4.0,
        "domain": (0.0, 10.0),
        "step": 0.1,
        "initial": 0.0,
    },
    "oxygen": {
        "unit": "%",
        "safe_range": (19.5, 23.5),
        "domain": (15.0, 25.0),
        "step": 0.15,
        "initial": 21.0,
    },
}
