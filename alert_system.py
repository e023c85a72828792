"""
Alert management: emission throttling, severity classification, bounded alert log,
and push of high-severity alerts to the operator notification sink.
"""

from __future__ import annotations

import itertools
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Mapping, Optional, Union

import config
from channels import Channel, display_name
from decision_engine import SafetyVerdict

logger = logging.getLogger(__name__)

EMERGENCY = "emergency"


class Severity(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Alert:
    id: int
    source: str  # channel value or "emergency"
    message: str
    timestamp: float
    severity: Severity
    value: Optional[float] = None
    initiator: Optional[str] = None

    @property
    def channel(self) -> Optional[Channel]:
        return None if self.source == EMERGENCY else Channel(self.source)


def classify_severity(verdict: SafetyVerdict, factor: float = config.HIGH_SEVERITY_FACTOR) -> Severity:
    limit = verdict.exceeded_limit
    if limit is not None and verdict.value is not None and verdict.value > factor * limit:
        return Severity.HIGH
    return Severity.MEDIUM


class AlertLog:
    """Most-recent-first log; inserting beyond capacity drops the oldest entry."""

    def __init__(self, capacity: int = config.ALERT_LOG_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._entries: Deque[Alert] = deque(maxlen=capacity)

    def add(self, alert: Alert) -> None:
        self._entries.appendleft(alert)

    def snapshot(self) -> List[Alert]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.snapshot())


class NotificationSink:
    """Operator notification channel (UI toast, pager, operator store...)."""

    def notify(self, alert: Alert) -> None:
        raise NotImplementedError

    def info(self, message: str) -> None:
        """Non-alert status message; optional for sinks."""


class LoggingNotificationSink(NotificationSink):
    def notify(self, alert: Alert) -> None:
        logger.warning("ALERT [%s] %s", alert.severity.value.upper(), alert.message)

    def info(self, message: str) -> None:
        logger.info(message)


class FanOutNotificationSink(NotificationSink):
    """Deliver to several sinks; a failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[NotificationSink]):
        self.sinks = list(sinks)

    def notify(self, alert: Alert) -> None:
        for sink in self.sinks:
            _deliver(sink.notify, alert)

    def info(self, message: str) -> None:
        for sink in self.sinks:
            _deliver(sink.info, message)


def _deliver(send: Callable, payload) -> bool:
    try:
        send(payload)
    except Exception:  # delivery is best-effort; the log stays the source of truth
        logger.exception("Notification delivery failed")
        return False
    return True


class AlertThrottle:
    def should_emit(self, verdict: SafetyVerdict, now: float) -> bool:
        raise NotImplementedError

    def clear(self, channel: Channel) -> None:
        """Called when a channel is back to safe."""


class ProbabilisticThrottle(AlertThrottle):
    """Reference policy: each unsafe channel alerts with a fixed chance per tick."""

    def __init__(self, probability: float = config.ALERT_PROBABILITY, rng: Optional[random.Random] = None):
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be within [0, 1]")
        self.probability = probability
        self.rng = rng or random.Random()

    def should_emit(self, verdict: SafetyVerdict, now: float) -> bool:
        return self.rng.random() < self.probability


class CooldownThrottle(AlertThrottle):
    """First unsafe tick always alerts, then at most once per cooldown window per channel."""

    def __init__(self, cooldown: float = config.ALERT_COOLDOWN):
        self.cooldown = cooldown
        self._last_emitted: Dict[Channel, float] = {}

    def should_emit(self, verdict: SafetyVerdict, now: float) -> bool:
        last = self._last_emitted.get(verdict.channel)
        if last is not None and now - last < self.cooldown:
            return False
        self._last_emitted[verdict.channel] = now
        return True

    def clear(self, channel: Channel) -> None:
        self._last_emitted.pop(channel, None)


def build_throttle(policy: str = config.ALERT_POLICY) -> AlertThrottle:
    if policy == "probabilistic":
        return ProbabilisticThrottle()
    if policy == "cooldown":
        return CooldownThrottle()
    raise ValueError(f"unknown alert policy: {policy}")


class AlertManager:
    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        throttle: Optional[AlertThrottle] = None,
        log: Optional[AlertLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.sink = sink or LoggingNotificationSink()
        self.throttle = throttle or build_throttle()
        self.log = log or AlertLog()
        self.clock = clock
        self._ids = itertools.count(1)

    @property
    def alerts(self) -> List[Alert]:
        return self.log.snapshot()

    def _record(self, alert: Alert) -> None:
        self.log.add(alert)
        if alert.severity is Severity.HIGH:
            _deliver(self.sink.notify, alert)

    def on_tick(self, verdicts: Union[Mapping[Channel, SafetyVerdict], Iterable[SafetyVerdict]]) -> List[Alert]:
        """Decide, per unsafe channel, whether to raise an alert this tick."""
        items = verdicts.values() if isinstance(verdicts, Mapping) else verdicts
        now = self.clock()
        created: List[Alert] = []
        for verdict in items:
            if verdict.safe:
                self.throttle.clear(verdict.channel)
                continue
            if not verdict.is_unsafe or not self.throttle.should_emit(verdict, now):
                continue
            alert = Alert(
                id=next(self._ids),
                source=verdict.channel.value,
                message=f"{display_name(verdict.channel)} levels are {verdict.value:.2f} - exceeding safe limits!",
                timestamp=now,
                severity=classify_severity(verdict),
                value=verdict.value,
            )
            logger.info("Alert %s raised for %s (%s)", alert.id, alert.source, alert.severity.value)
            self._record(alert)
            created.append(alert)
        return created

    def trigger_emergency(self, initiator: str) -> Alert:
        """Operator-invoked broadcast; always high severity, always pushed."""
        alert = Alert(
            id=next(self._ids),
            source=EMERGENCY,
            message=f"Emergency alert triggered by {initiator}",
            timestamp=self.clock(),
            severity=Severity.HIGH,
            initiator=initiator,
        )
        logger.warning("Emergency broadcast by %s", initiator)
        _deliver(self.sink.info, "EMERGENCY ALERT SENT TO ALL PERSONNEL!")
        self._record(alert)
        return alert
