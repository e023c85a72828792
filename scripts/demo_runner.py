"""
Demo runner that drives the gas monitoring backend via HTTP.
Assumes server running on localhost:5000 (flask --app backend run).
"""
from __future__ import annotations

import time

import requests

SERVER = "http://localhost:5000"


def print_status():
    r = requests.get(f"{SERVER}/gas/status", timeout=5)
    r.raise_for_status()
    data = r.json()
    channels = " | ".join(
        f"{v['name']} {'FAULT' if v['value'] is None else format(v['value'], '.2f')}" for v in data["verdicts"]
    )
    print(f"[{data['state']}] {channels} | Risk {data['prediction']['risk_level']}")


def main(duration: float = 30.0, poll: float = 3.0):
    requests.post(f"{SERVER}/gas/start", timeout=5).raise_for_status()
    start = time.time()
    while time.time() - start < duration:
        print_status()
        time.sleep(poll)

    r = requests.post(f"{SERVER}/gas/emergency", json={"initiator": "Demo Runner"}, timeout=5)
    r.raise_for_status()
    print(f"Emergency raised: {r.json()['message']}")

    for alert in requests.get(f"{SERVER}/gas/alerts", timeout=5).json():
        print(f"  [{alert['severity'].upper()}] {alert['message']}")

    pending = requests.get(f"{SERVER}/operator/alerts", timeout=5).json()
    for alert in pending:
        requests.post(
            f"{SERVER}/operator/ack_alert", json={"alert_id": alert["id"], "operator": "Demo Runner"}, timeout=5
        )
    print(f"Acknowledged {len(pending)} operator alerts")

    requests.post(f"{SERVER}/gas/stop", timeout=5).raise_for_status()


if __name__ == "__main__":
    main()
