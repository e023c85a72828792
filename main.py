"""
CLI entry-point for quick simulation without the Streamlit UI or Flask backend.
"""

from __future__ import annotations

import argparse
import logging
import time

import config
from alert_system import AlertManager, build_throttle
from channels import display_name
from monitor_engine import GasMonitoringEngine


def format_status(engine: GasMonitoringEngine) -> str:
    parts = []
    for channel, verdict in engine.verdicts.items():
        value = "FAULT" if verdict.is_fault else f"{verdict.value:.2f}"
        flag = "" if verdict.safe else "!"
        parts.append(f"{display_name(channel)} {value}{flag}")
    return " | ".join(parts) + f" | Risk {engine.prediction.risk_level.value.upper()}"


def run_cli(iterations: int = 20, interval: float = config.TICK_INTERVAL_SECONDS, policy: str = config.ALERT_POLICY) -> None:
    throttle = build_throttle(policy)
    engine = GasMonitoringEngine(alert_manager=AlertManager(throttle=throttle), interval=interval)

    try:
        for _ in range(iterations):
            result = engine.tick()
            print(format_status(engine))
            for alert in result.alerts:
                print(f"  [{alert.severity.value.upper()}] {alert.message}")
            time.sleep(interval)
    finally:
        engine.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the gas monitoring engine in the terminal.")
    parser.add_argument("--iterations", type=int, default=20)
    parser.add_argument("--interval", type=float, default=config.TICK_INTERVAL_SECONDS)
    parser.add_argument("--policy", choices=["probabilistic", "cooldown"], default=config.ALERT_POLICY)
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format=config.LOG_FORMAT)
    run_cli(args.iterations, args.interval, args.policy)


if __name__ == "__main__":
    main()
