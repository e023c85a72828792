"""
Streamlit operator console for the underground gas detection engine.
"""

from __future__ import annotations

import io
import threading
import time
import wave
from collections import deque
from typing import Deque, Dict, List, Optional

import numpy as np
import pandas as pd
import streamlit as st

from alert_system import Alert, AlertManager, NotificationSink
from channels import Channel, display_name
from decision_engine import RiskLevel
from monitor_engine import GasMonitoringEngine
from sensor_simulator import PlaybackSensorSource

PAGE_TITLE = "Real-Time Gas Detection"
REFRESH_MS = 1000
MAX_HISTORY = 120  # points kept for the trend chart


def generate_beep(seconds: float = 0.35, freq: float = 880.0) -> bytes:
    """Generate a short WAV beep."""
    rate = 44100
    t = np.linspace(0, seconds, int(rate * seconds), False)
    tone = 0.5 * np.sin(freq * 2 * np.pi * t)
    audio = (tone * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(rate)
        wav_file.writeframes(audio.tobytes())
    return buf.getvalue()


class StreamlitNotificationSink(NotificationSink):
    """Queues notifications from the tick thread; the page drains them on each rerun."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Deque[tuple] = deque()

    def notify(self, alert: Alert) -> None:
        with self._lock:
            self._pending.append(("alert", alert))

    def info(self, message: str) -> None:
        with self._lock:
            self._pending.append(("info", message))

    def drain(self) -> List[tuple]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items


def init_state():
    if "sink" not in st.session_state:
        st.session_state.sink = StreamlitNotificationSink()
    if "engine" not in st.session_state:
        st.session_state.engine = GasMonitoringEngine(alert_manager=AlertManager(sink=st.session_state.sink))
    if "history" not in st.session_state:
        st.session_state.history = pd.DataFrame()
    if "beep" not in st.session_state:
        st.session_state.beep = generate_beep()


def append_history(engine: GasMonitoringEngine) -> pd.DataFrame:
    row: Dict[str, Optional[float]] = {"timestamp": pd.Timestamp.now()}
    for channel, verdict in engine.verdicts.items():
        row[channel.value] = verdict.value
    df = pd.concat([st.session_state.history, pd.DataFrame([row])], ignore_index=True)
    if len(df) > MAX_HISTORY:
        df = df.iloc[-MAX_HISTORY:]
    st.session_state.history = df
    return df


def render_channels(engine: GasMonitoringEngine):
    columns = st.columns(len(engine.verdicts))
    for col, (channel, verdict) in zip(columns, engine.verdicts.items()):
        cfg = engine.configs[channel]
        with col:
            st.subheader(display_name(channel))
            if verdict.is_fault:
                st.metric(cfg.unit, "n/a")
                st.error("SENSOR FAULT")
                st.caption(verdict.fault)
                continue
            st.metric(cfg.unit, f"{verdict.value:.2f}")
            st.caption(cfg.limit_label())
            st.progress(int(cfg.progress(verdict.value)))
            if not verdict.safe:
                st.error("UNSAFE")


def render_prediction(engine: GasMonitoringEngine):
    prediction = engine.prediction
    st.header("AI-Powered Predictions")
    col1, col2, col3 = st.columns(3)
    color = {RiskLevel.LOW: "green", RiskLevel.MEDIUM: "orange", RiskLevel.HIGH: "red"}[prediction.risk_level]
    col1.markdown(f"**Current Risk Level**  \n:{color}[{prediction.risk_level.value}]")
    col2.markdown(f"**Next Hour Forecast**  \n{prediction.forecast}")
    col3.markdown("**Recommended Actions**\n" + "\n".join(f"- {a}" for a in prediction.recommended_actions))


def render_alerts(engine: GasMonitoringEngine):
    st.header("Recent Alerts")
    alerts = engine.alerts
    if not alerts:
        st.caption("No recent alerts")
        return
    for alert in alerts:
        stamp = time.strftime("%H:%M:%S", time.localtime(alert.timestamp))
        if alert.severity.value == "high":
            st.error(f"{alert.message}  ({stamp})", icon="🚨")
        else:
            st.warning(f"{alert.message}  ({stamp})", icon="⚠️")


def drain_notifications():
    for kind, payload in st.session_state.sink.drain():
        if kind == "alert":
            st.toast(payload.message, icon="🚨")
            st.audio(st.session_state.beep, format="audio/wav")
        else:
            st.toast(payload, icon="ℹ️")


def main():
    st.set_page_config(page_title=PAGE_TITLE, page_icon="⛏️", layout="wide")
    init_state()
    engine: GasMonitoringEngine = st.session_state.engine
    st.title(PAGE_TITLE)

    st.sidebar.header("Controls")
    if engine.running:
        if st.sidebar.button("Stop Simulation"):
            engine.stop()
    elif st.sidebar.button("Start Simulation"):
        engine.start()

    operator = st.sidebar.text_input("Operator name", value="Operator")
    if st.sidebar.button("Emergency Alert", type="primary"):
        engine.trigger_emergency(operator or "Operator")

    st.sidebar.header("Data Source")
    uploaded = st.sidebar.file_uploader("Optional: replay CSV readings", type=["csv"])
    if uploaded and not isinstance(engine.source, PlaybackSensorSource):
        source = PlaybackSensorSource(configs=engine.configs)
        try:
            source.set_dataset(pd.read_csv(uploaded))
            engine.replace_source(source)
            st.sidebar.success("Dataset loaded.")
        except ValueError as exc:  # pragma: no cover - user input guard
            st.sidebar.error(f"Dataset error: {exc}")

    drain_notifications()
    render_channels(engine)

    history = append_history(engine)
    if len(history) > 1:
        st.line_chart(history.set_index("timestamp")[[c.value for c in Channel]])

    render_prediction(engine)
    render_alerts(engine)

    st.caption(f"Engine {engine.state.value}; tick every {engine.interval:.0f}s.")
    time.sleep(REFRESH_MS / 1000)
    st.rerun()


if __name__ == "__main__":
    main()
