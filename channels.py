"""
Monitored gas channels, their static limits, and the reading record.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

import config


class Channel(str, Enum):
    METHANE = "methane"
    CARBON_MONOXIDE = "carbon_monoxide"
    HYDROGEN = "hydrogen"
    OXYGEN = "oxygen"


DISPLAY_NAMES = {
    Channel.METHANE: "Methane (CH₄)",
    Channel.CARBON_MONOXIDE: "Carbon Monoxide (CO)",
    Channel.HYDROGEN: "Hydrogen (H₂)",
    Channel.OXYGEN: "Oxygen (O₂)",
}


def display_name(channel: Channel) -> str:
    return DISPLAY_NAMES.get(channel, str(channel.value))


def bounded(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class ChannelConfig:
    """Immutable limits for one channel: a single upper threshold or a safe range."""

    channel: Channel
    unit: str
    domain: Tuple[float, float]
    step: float
    initial: float
    threshold: Optional[float] = None
    safe_range: Optional[Tuple[float, float]] = None

    def __post_init__(self) -> None:
        if (self.threshold is None) == (self.safe_range is None):
            raise ValueError(f"{self.channel.value}: exactly one of threshold or safe_range is required")
        low, high = self.domain
        if low >= high:
            raise ValueError(f"{self.channel.value}: domain lower bound must be below upper bound")
        if self.safe_range is not None and self.safe_range[0] >= self.safe_range[1]:
            raise ValueError(f"{self.channel.value}: safe_range must be ascending")
        if self.step <= 0:
            raise ValueError(f"{self.channel.value}: step must be > 0")
        if not low <= self.initial <= high:
            raise ValueError(f"{self.channel.value}: initial value outside domain")

    @property
    def is_range(self) -> bool:
        return self.safe_range is not None

    def clamp(self, value: float) -> float:
        return bounded(value, self.domain[0], self.domain[1])

    def limit_label(self) -> str:
        if self.safe_range is not None:
            return f"Safe between: {self.safe_range[0]} - {self.safe_range[1]}"
        return f"Safe below: {self.threshold}"

    def progress(self, value: float) -> float:
        """Gauge fill in percent for rendering."""
        if self.safe_range is not None:
            low, high = self.domain
            return bounded((value - low) / (high - low) * 100, 0.0, 100.0)
        return bounded(value / (self.threshold * config.HIGH_SEVERITY_FACTOR) * 100, 0.0, 100.0)


@dataclass(frozen=True)
class Reading:
    channel: Channel
    value: float
    timestamp: float = field(default_factory=time.time)
    # True when a feed failed and the previous value was reused
    stale: bool = False


def load_channel_configs(limits: Optional[Dict[str, Dict]] = None) -> Dict[Channel, ChannelConfig]:
    """Build the channel table from config.CHANNEL_LIMITS (or an override)."""
    limits = config.CHANNEL_LIMITS if limits is None else limits
    configs: Dict[Channel, ChannelConfig] = {}
    for name, entry in limits.items():
        channel = Channel(name)
        safe_range = entry.get("safe_range")
        configs[channel] = ChannelConfig(
            channel=channel,
            unit=entry["unit"],
            domain=tuple(entry["domain"]),
            step=float(entry["step"]),
            initial=float(entry["initial"]),
            threshold=entry.get("threshold"),
            safe_range=tuple(safe_range) if safe_range is not None else None,
        )
    missing = set(Channel) - set(configs)
    if missing:
        names = ", ".join(sorted(c.value for c in missing))
        raise ValueError(f"channel limits missing for: {names}")
    return configs


def initial_readings(configs: Dict[Channel, ChannelConfig]) -> Dict[Channel, Reading]:
    now = time.time()
    return {channel: Reading(channel, cfg.initial, now) for channel, cfg in configs.items()}
