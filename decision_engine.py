"""
Decision engine: per-channel threshold evaluation and rule-based site risk prediction.
Designed to be swappable with a learned model later without changing the API.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from channels import Channel, ChannelConfig, Reading

logger = logging.getLogger(__name__)

Limit = Union[float, Tuple[float, float]]


@dataclass(frozen=True)
class SafetyVerdict:
    channel: Channel
    value: Optional[float]
    safe: bool
    limit: Limit
    breach: Optional[str] = None  # "above" | "below" | None
    fault: Optional[str] = None  # set when the reading could not be evaluated
    timestamp: float = 0.0

    @property
    def is_fault(self) -> bool:
        return self.fault is not None

    @property
    def is_unsafe(self) -> bool:
        """Unsafe because of a real limit breach (faults are reported separately)."""
        return not self.safe and self.fault is None

    @property
    def exceeded_limit(self) -> Optional[float]:
        """The bound that was crossed: the threshold, or the violated end of a range."""
        if not self.is_unsafe:
            return None
        if isinstance(self.limit, tuple):
            return self.limit[0] if self.breach == "below" else self.limit[1]
        return self.limit

    @property
    def safe_low(self) -> bool:
        return not self.is_fault and self.breach != "below"

    @property
    def safe_high(self) -> bool:
        return not self.is_fault and self.breach != "above"

    @property
    def status(self) -> str:
        if self.is_fault:
            return "fault"
        return "safe" if self.safe else "unsafe"


class ThresholdEvaluator:
    """Maps one reading to a verdict. Ties at a boundary are declared unsafe."""

    @staticmethod
    def _limit(cfg: ChannelConfig) -> Limit:
        return cfg.safe_range if cfg.safe_range is not None else cfg.threshold

    def _fault(self, reading: Reading, cfg: ChannelConfig, reason: str) -> SafetyVerdict:
        logger.warning("Sensor fault on %s: %s", cfg.channel.value, reason)
        return SafetyVerdict(
            channel=cfg.channel,
            value=None,
            safe=False,
            limit=self._limit(cfg),
            fault=reason,
            timestamp=getattr(reading, "timestamp", 0.0),
        )

    def evaluate(self, reading: Reading, cfg: ChannelConfig) -> SafetyVerdict:
        value = reading.value
        if isinstance(value, bool) or not isinstance(value, Real):
            return self._fault(reading, cfg, f"non-numeric value {value!r}")
        value = float(value)
        if not math.isfinite(value):
            return self._fault(reading, cfg, f"non-finite value {value}")

        if cfg.safe_range is not None:
            low, high = cfg.safe_range
            safe_low = value > low
            safe_high = value < high
            breach = None if safe_low and safe_high else ("below" if not safe_low else "above")
            return SafetyVerdict(
                channel=cfg.channel,
                value=value,
                safe=safe_low and safe_high,
                limit=cfg.safe_range,
                breach=breach,
                timestamp=reading.timestamp,
            )

        safe = value < cfg.threshold
        return SafetyVerdict(
            channel=cfg.channel,
            value=value,
            safe=safe,
            limit=cfg.threshold,
            breach=None if safe else "above",
            timestamp=reading.timestamp,
        )

    def evaluate_all(
        self, readings: Mapping[Channel, Reading], configs: Mapping[Channel, ChannelConfig]
    ) -> Dict[Channel, SafetyVerdict]:
        """Evaluate every configured channel; one bad channel never blocks the others."""
        verdicts: Dict[Channel, SafetyVerdict] = {}
        for channel, cfg in configs.items():
            reading = readings.get(channel)
            if reading is None:
                verdicts[channel] = self._fault(Reading(channel, None), cfg, "no reading")
                continue
            try:
                verdicts[channel] = self.evaluate(reading, cfg)
            except Exception as exc:  # isolate per-channel faults
                verdicts[channel] = self._fault(reading, cfg, f"evaluation error: {exc}")
        return verdicts


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class Prediction:
    risk_level: RiskLevel
    forecast: str
    recommended_actions: Tuple[str, ...]
    unsafe_count: int = 0


_POLICY = {
    RiskLevel.LOW: (
        "Stable conditions expected",
        ("Continue normal operations", "Maintain regular monitoring"),
    ),
    RiskLevel.MEDIUM: (
        "Potential for worsening conditions in the next hour",
        (
            "Increase ventilation in affected areas",
            "Monitor gas levels more frequently",
            "Prepare for possible evacuation if levels continue to rise",
        ),
    ),
    RiskLevel.HIGH: (
        "High probability of dangerous conditions developing",
        (
            "Begin evacuation procedures immediately",
            "Activate emergency response team",
            "Shut down non-essential operations",
            "Identify source of gas leaks",
        ),
    ),
}


class RiskAggregator:
    """Stateless: the prediction depends only on the verdicts passed in."""

    @staticmethod
    def unsafe_count(verdicts: Union[Mapping[Channel, SafetyVerdict], Iterable[SafetyVerdict]]) -> int:
        items = verdicts.values() if isinstance(verdicts, Mapping) else verdicts
        # distinct physical channels; faulted channels are not counted
        return len({v.channel for v in items if v.is_unsafe})

    def aggregate(self, verdicts: Union[Mapping[Channel, SafetyVerdict], Iterable[SafetyVerdict]]) -> Prediction:
        count = self.unsafe_count(verdicts)
        if count == 0:
            level = RiskLevel.LOW
        elif count == 1:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.HIGH
        forecast, actions = _POLICY[level]
        return Prediction(risk_level=level, forecast=forecast, recommended_actions=actions, unsafe_count=count)
