"""
Sensor sources for the gas monitoring engine.
Every source satisfies the same contract: sample(previous) -> one Reading per channel.
"""

from __future__ import annotations

import logging
import math
import random
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import pandas as pd

import config
from channels import Channel, ChannelConfig, Reading, initial_readings, load_channel_configs

logger = logging.getLogger(__name__)

Readings = Dict[Channel, Reading]


class SensorReadError(RuntimeError):
    """A feed could not produce a value for one channel."""


class SensorSource:
    """Base contract. Subclasses return a fresh Reading for every configured channel."""

    configs: Dict[Channel, ChannelConfig]

    def initial(self) -> Readings:
        return initial_readings(self.configs)

    def sample(self, previous: Mapping[Channel, Reading]) -> Readings:
        raise NotImplementedError

    def close(self) -> None:
        """Release any feed resources."""


@dataclass
class RandomWalkSensorSimulator(SensorSource):
    """Bounded random walk: value' = clamp(value + uniform(-step, step), domain)."""

    configs: Dict[Channel, ChannelConfig] = field(default_factory=load_channel_configs)
    rng: random.Random = field(default_factory=random.Random)

    def sample(self, previous: Mapping[Channel, Reading]) -> Readings:
        now = time.time()
        readings: Readings = {}
        for channel, cfg in self.configs.items():
            last = previous.get(channel)
            base = last.value if last is not None else cfg.initial
            delta = self.rng.uniform(-cfg.step, cfg.step)
            readings[channel] = Reading(channel, cfg.clamp(base + delta), now)
        return readings


@dataclass
class PlaybackSensorSource(SensorSource):
    """Replays recorded rows, cycling when reaching the end."""

    configs: Dict[Channel, ChannelConfig] = field(default_factory=load_channel_configs)
    dataset: Optional[pd.DataFrame] = None
    dataset_index: int = 0

    def load_csv_dataset(self, csv_path: Path) -> None:
        """Load dataset from CSV. Expected columns: methane, carbon_monoxide, hydrogen, oxygen."""
        self.set_dataset(pd.read_csv(csv_path))

    def set_dataset(self, df: pd.DataFrame) -> None:
        expected = {channel.value for channel in self.configs}
        missing = expected - set(df.columns)
        if missing:
            raise ValueError(f"Dataset missing columns: {sorted(missing)}")
        if df.empty:
            raise ValueError("Dataset is empty")
        self.dataset = df.reset_index(drop=True)
        self.dataset_index = 0

    def sample(self, previous: Mapping[Channel, Reading]) -> Readings:
        if self.dataset is None:
            raise SensorReadError("no dataset loaded")
        row = self.dataset.iloc[self.dataset_index]
        self.dataset_index = (self.dataset_index + 1) % len(self.dataset)
        now = time.time()
        readings: Readings = {}
        for channel, cfg in self.configs.items():
            raw = row[channel.value]
            try:
                value = float(raw)
            except (TypeError, ValueError):
                # Let the evaluator flag the channel as a sensor fault
                readings[channel] = Reading(channel, raw, now)
                continue
            readings[channel] = Reading(channel, value if math.isnan(value) else cfg.clamp(value), now)
        return readings


class TimedFeedSensorSource(SensorSource):
    """
    Wraps per-channel hardware readers with a bounded timeout.
    On timeout or read failure the previous reading is reused and marked stale.
    Each channel has its own worker, so a hung feed only blocks itself; while its
    last read is still outstanding no new read is queued for that channel.
    """

    def __init__(
        self,
        readers: Mapping[Channel, Callable[[], float]],
        configs: Optional[Dict[Channel, ChannelConfig]] = None,
        timeout: float = config.SENSOR_TIMEOUT_SECONDS,
    ):
        self.configs = configs if configs is not None else load_channel_configs()
        self.readers = dict(readers)
        self.timeout = timeout
        self._executors = {
            channel: ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"gas-feed-{channel.value}")
            for channel in self.configs
            if channel in self.readers
        }
        self._pending: Dict[Channel, Future] = {}

    def _fallback(self, channel: Channel, previous: Mapping[Channel, Reading], reason: str) -> Reading:
        last = previous.get(channel)
        value = last.value if last is not None else self.configs[channel].initial
        logger.warning("Sensor %s unavailable (%s); reusing last value %s", channel.value, reason, value)
        return Reading(channel, value, time.time(), stale=True)

    def sample(self, previous: Mapping[Channel, Reading]) -> Readings:
        submitted: Dict[Channel, Future] = {}
        hung = set()
        for channel, executor in self._executors.items():
            outstanding = self._pending.get(channel)
            if outstanding is not None and not outstanding.done():
                hung.add(channel)
                continue
            submitted[channel] = self._pending[channel] = executor.submit(self.readers[channel])
        if submitted:
            wait(submitted.values(), timeout=self.timeout)

        readings: Readings = {}
        for channel, cfg in self.configs.items():
            if channel in hung:
                readings[channel] = self._fallback(channel, previous, "previous read still pending")
                continue
            future = submitted.get(channel)
            if future is None:
                readings[channel] = self._fallback(channel, previous, "no reader configured")
                continue
            if not future.done():
                readings[channel] = self._fallback(channel, previous, "timeout")
                continue
            self._pending.pop(channel, None)
            try:
                value = float(future.result())
            except Exception as exc:  # any feed failure falls back to the last reading
                readings[channel] = self._fallback(channel, previous, str(exc))
                continue
            readings[channel] = Reading(channel, cfg.clamp(value), time.time())
        return readings

    def close(self) -> None:
        for executor in self._executors.values():
            executor.shutdown(wait=False, cancel_futures=True)
