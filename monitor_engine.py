"""
Engine scheduler: owns the latest readings/verdicts/prediction and the alert log,
and runs the sample -> evaluate -> aggregate -> alert pipeline once per tick.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import config
from alert_system import Alert, AlertManager, NotificationSink
from channels import Channel, ChannelConfig, Reading, load_channel_configs
from decision_engine import Prediction, RiskAggregator, SafetyVerdict, ThresholdEvaluator
from sensor_simulator import RandomWalkSensorSimulator, SensorSource

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class RepeatingTask:
    """Cancellable repeating callback."""

    def start(self) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


class TimerTask(RepeatingTask):
    """Runs callback every `interval` seconds on one daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "gas-engine-tick"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            try:
                self.callback()
            except Exception:  # a broken tick must not kill the loop
                logger.exception("Tick failed")

    def cancel(self) -> None:
        self._cancelled.set()


TaskFactory = Callable[[float, Callable[[], None]], RepeatingTask]


@dataclass
class TickResult:
    readings: Dict[Channel, Reading]
    verdicts: Dict[Channel, SafetyVerdict]
    prediction: Prediction
    alerts: List[Alert]


class GasMonitoringEngine:
    """One monitored site. Ticks never overlap; all state is owned by this instance."""

    def __init__(
        self,
        source: Optional[SensorSource] = None,
        configs: Optional[Dict[Channel, ChannelConfig]] = None,
        alert_manager: Optional[AlertManager] = None,
        sink: Optional[NotificationSink] = None,
        evaluator: Optional[ThresholdEvaluator] = None,
        aggregator: Optional[RiskAggregator] = None,
        interval: float = config.TICK_INTERVAL_SECONDS,
        task_factory: TaskFactory = TimerTask,
    ):
        if configs is None:
            configs = getattr(source, "configs", None) or load_channel_configs()
        self.configs = configs
        self.source = source or RandomWalkSensorSimulator(configs=self.configs)
        self.alert_manager = alert_manager or AlertManager(sink=sink)
        self.evaluator = evaluator or ThresholdEvaluator()
        self.aggregator = aggregator or RiskAggregator()
        self.interval = interval
        self.task_factory = task_factory

        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = EngineState.STOPPED
        self._task: Optional[RepeatingTask] = None
        self.tick_count = 0

        self._readings = self.source.initial()
        self._verdicts = self.evaluator.evaluate_all(self._readings, self.configs)
        self._prediction = self.aggregator.aggregate(self._verdicts)

    # -- control -------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is EngineState.RUNNING

    def start(self) -> bool:
        """Stopped -> Running. Returns False when already running."""
        with self._state_lock:
            if self._state is EngineState.RUNNING:
                return False
            self._state = EngineState.RUNNING
            self._task = self.task_factory(self.interval, self._scheduled_tick)
            self._task.start()
        logger.info("Gas monitoring started (interval %.1fs)", self.interval)
        self._inform("Gas level simulation started")
        return True

    def stop(self) -> bool:
        """Running -> Stopped. An in-flight tick completes; no further tick starts."""
        with self._state_lock:
            if self._state is EngineState.STOPPED:
                return False
            self._state = EngineState.STOPPED
            task, self._task = self._task, None
        if task is not None:
            task.cancel()
        logger.info("Gas monitoring stopped")
        self._inform("Gas level simulation stopped")
        return True

    def _inform(self, message: str) -> None:
        try:
            self.alert_manager.sink.info(message)
        except Exception:
            logger.exception("Notification delivery failed")

    # -- ticking -------------------------------------------------------------

    def _scheduled_tick(self) -> None:
        # running is re-checked under the tick lock so a stop() that lands while
        # this tick waits for the lock is honoured
        with self._tick_lock:
            if not self.running:
                return
            result = self._run_tick()
        self._log_tick(result)

    def _sample(self) -> Dict[Channel, Reading]:
        try:
            fresh = self.source.sample(self._readings)
        except Exception:
            logger.exception("Sensor source failed; reusing previous readings")
            return dict(self._readings)
        readings = dict(self._readings)
        readings.update(fresh)
        return readings

    def tick(self) -> TickResult:
        """Run one full pipeline pass. Safe to call directly (tests, manual stepping)."""
        with self._tick_lock:
            result = self._run_tick()
        self._log_tick(result)
        return result

    def _run_tick(self) -> TickResult:
        # caller holds _tick_lock
        readings = self._sample()
        verdicts = self.evaluator.evaluate_all(readings, self.configs)
        prediction = self.aggregator.aggregate(verdicts)
        alerts = self.alert_manager.on_tick(verdicts)
        self._readings = readings
        self._verdicts = verdicts
        self._prediction = prediction
        self.tick_count += 1
        return TickResult(readings=readings, verdicts=verdicts, prediction=prediction, alerts=alerts)

    def _log_tick(self, result: TickResult) -> None:
        logger.debug("Tick %d: risk %s", self.tick_count, result.prediction.risk_level.value)

    def trigger_emergency(self, initiator: str) -> Alert:
        with self._tick_lock:
            return self.alert_manager.trigger_emergency(initiator)

    def close(self) -> None:
        """Stop ticking and release the sensor source."""
        self.stop()
        with self._tick_lock:
            self.source.close()

    def replace_source(self, source: SensorSource) -> None:
        """Swap the feed between ticks, closing the previous one."""
        with self._tick_lock:
            old, self.source = self.source, source
        if old is not source:
            old.close()

    # -- outputs -------------------------------------------------------------

    @property
    def readings(self) -> Dict[Channel, Reading]:
        return dict(self._readings)

    @property
    def verdicts(self) -> Dict[Channel, SafetyVerdict]:
        return dict(self._verdicts)

    @property
    def prediction(self) -> Prediction:
        return self._prediction

    @property
    def alerts(self) -> List[Alert]:
        return self.alert_manager.alerts
