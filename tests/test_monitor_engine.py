import random
import threading

from alert_system import AlertManager, NotificationSink, ProbabilisticThrottle, Severity
from channels import Channel, Reading, load_channel_configs
from decision_engine import RiskLevel
from monitor_engine import EngineState, GasMonitoringEngine, RepeatingTask, TimerTask
from sensor_simulator import RandomWalkSensorSimulator, SensorSource

CONFIGS = load_channel_configs()


class FakeTask(RepeatingTask):
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class TaskRecorder:
    def __init__(self):
        self.tasks = []

    def __call__(self, interval, callback):
        task = FakeTask(interval, callback)
        self.tasks.append(task)
        return task


class ScriptedSource(SensorSource):
    """Returns queued values per tick; a value of None makes sample() fail."""

    def __init__(self, *frames):
        self.configs = CONFIGS
        self.frames = list(frames)

    def sample(self, previous):
        frame = self.frames.pop(0)
        if frame is None:
            raise OSError("serial link down")
        readings = dict(previous)
        for name, value in frame.items():
            readings[Channel(name)] = Reading(Channel(name), value)
        return readings


class RecordingSink(NotificationSink):
    def __init__(self):
        self.alerts = []
        self.messages = []

    def notify(self, alert):
        self.alerts.append(alert)

    def info(self, message):
        self.messages.append(message)


def _engine(source=None, probability=1.0, sink=None):
    recorder = TaskRecorder()
    sink = sink or RecordingSink()
    manager = AlertManager(sink=sink, throttle=ProbabilisticThrottle(probability, random.Random(0)))
    engine = GasMonitoringEngine(
        source=source or RandomWalkSensorSimulator(configs=CONFIGS, rng=random.Random(0)),
        alert_manager=manager,
        interval=3.0,
        task_factory=recorder,
    )
    return engine, recorder, sink


def test_initial_state_is_stopped_and_low_risk():
    engine, recorder, _ = _engine()
    assert engine.state is EngineState.STOPPED
    assert engine.prediction.risk_level is RiskLevel.LOW
    assert set(engine.verdicts) == set(Channel)
    assert engine.alerts == []
    assert recorder.tasks == []


def test_start_is_idempotent():
    engine, recorder, sink = _engine()
    assert engine.start()
    assert not engine.start()
    assert engine.state is EngineState.RUNNING
    assert len(recorder.tasks) == 1
    assert recorder.tasks[0].started
    assert recorder.tasks[0].interval == 3.0
    assert sink.messages == ["Gas level simulation started"]


def test_stop_is_idempotent():
    engine, recorder, _ = _engine()
    assert not engine.stop()
    engine.start()
    assert engine.stop()
    assert not engine.stop()
    assert recorder.tasks[0].cancelled
    assert engine.state is EngineState.STOPPED


def test_no_tick_fires_while_stopped():
    engine, recorder, _ = _engine()
    engine.start()
    recorder.tasks[0].fire()
    assert engine.tick_count == 1
    engine.stop()
    recorder.tasks[0].fire()
    assert engine.tick_count == 1


def test_stop_then_start_resumes_ticking():
    engine, recorder, _ = _engine()
    engine.start()
    engine.stop()
    engine.start()
    assert len(recorder.tasks) == 2
    recorder.tasks[1].fire()
    recorder.tasks[1].fire()
    assert engine.tick_count == 2


def test_tick_runs_full_pipeline():
    source = ScriptedSource({"methane": 1.2}, {"methane": 1.2, "carbon_monoxide": 80.0}, {"methane": 0.3, "carbon_monoxide": 10.0})
    engine, _, sink = _engine(source)

    result = engine.tick()
    assert not result.verdicts[Channel.METHANE].safe
    assert result.prediction.risk_level is RiskLevel.MEDIUM
    assert [a.source for a in result.alerts] == ["methane"]
    assert engine.prediction == result.prediction

    result = engine.tick()
    assert result.prediction.risk_level is RiskLevel.HIGH
    assert [a.severity for a in result.alerts] == [Severity.MEDIUM, Severity.HIGH]
    assert sink.alerts == [result.alerts[1]]
    assert len(engine.alerts) == 3
    assert engine.alerts[0] is result.alerts[-1]

    result = engine.tick()
    assert result.prediction.risk_level is RiskLevel.LOW
    assert result.alerts == []
    assert engine.readings[Channel.METHANE].value == 0.3


def test_source_failure_reuses_previous_readings():
    source = ScriptedSource({"hydrogen": 5.0}, None)
    engine, _, _ = _engine(source, probability=0.0)
    engine.tick()
    result = engine.tick()
    assert result.readings[Channel.HYDROGEN].value == 5.0
    assert result.prediction.risk_level is RiskLevel.MEDIUM
    assert engine.tick_count == 2


def test_faulted_channel_does_not_block_others():
    source = ScriptedSource({"methane": "garbage", "hydrogen": 5.0, "oxygen": 16.0})
    engine, _, _ = _engine(source)
    result = engine.tick()
    assert result.verdicts[Channel.METHANE].is_fault
    assert result.verdicts[Channel.HYDROGEN].is_unsafe
    assert result.verdicts[Channel.OXYGEN].is_unsafe
    assert result.prediction.risk_level is RiskLevel.HIGH
    assert {a.source for a in result.alerts} == {"hydrogen", "oxygen"}


def test_trigger_emergency_through_engine():
    engine, _, sink = _engine(probability=0.0)
    alert = engine.trigger_emergency("Alice")
    assert engine.alerts == [alert]
    assert "Alice" in alert.message
    assert sink.alerts == [alert]


def test_engines_are_independent():
    first, _, _ = _engine(ScriptedSource({"methane": 2.0}))
    second, _, _ = _engine(ScriptedSource({"methane": 0.1}))
    first.tick()
    second.tick()
    assert first.prediction.risk_level is RiskLevel.MEDIUM
    assert second.prediction.risk_level is RiskLevel.LOW
    assert second.alerts == []


def test_readings_stay_in_domain_over_many_ticks():
    engine, _, _ = _engine(probability=0.0)
    for _ in range(300):
        engine.tick()
        for channel, reading in engine.readings.items():
            low, high = CONFIGS[channel].domain
            assert low <= reading.value <= high


def test_timer_task_repeats_until_cancelled():
    fired = threading.Event()
    calls = []

    def callback():
        calls.append(1)
        if len(calls) >= 2:
            fired.set()

    task = TimerTask(0.01, callback)
    task.start()
    assert fired.wait(2.0)
    task.cancel()
    task._thread.join(1.0)
    assert not task._thread.is_alive()


def test_timer_task_survives_callback_errors():
    calls = []
    done = threading.Event()

    def callback():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        done.set()

    task = TimerTask(0.01, callback)
    task.start()
    assert done.wait(2.0)
    task.cancel()


class ClosableSource(RandomWalkSensorSimulator):
    def __init__(self):
        super().__init__(configs=CONFIGS, rng=random.Random(0))
        self.closed = False

    def close(self):
        self.closed = True


class BlockingSource(SensorSource):
    """First sample() blocks until released; later samples return immediately."""

    def __init__(self):
        self.configs = CONFIGS
        self.entered = threading.Event()
        self.release = threading.Event()

    def sample(self, previous):
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(5.0)
        return dict(previous)


def test_close_stops_engine_and_releases_source():
    source = ClosableSource()
    engine, recorder, _ = _engine(source)
    engine.start()
    engine.close()
    assert engine.state is EngineState.STOPPED
    assert recorder.tasks[0].cancelled
    assert source.closed


def test_replace_source_closes_previous_feed():
    old = ClosableSource()
    engine, _, _ = _engine(old)
    new = ClosableSource()
    engine.replace_source(new)
    assert old.closed
    assert not new.closed
    assert engine.source is new


def test_scheduled_tick_waiting_on_lock_honours_stop():
    engine, recorder, _ = _engine()
    engine._tick_lock.acquire()
    try:
        engine.start()
        worker = threading.Thread(target=recorder.tasks[0].fire)
        worker.start()
        worker.join(0.05)
        engine.stop()
    finally:
        engine._tick_lock.release()
    worker.join(2.0)
    assert not worker.is_alive()
    assert engine.tick_count == 0


def test_stop_during_running_tick_lets_it_finish_and_starts_no_more():
    source = BlockingSource()
    tasks = []

    def factory(interval, callback):
        task = TimerTask(interval, callback)
        tasks.append(task)
        return task

    sink = RecordingSink()
    engine = GasMonitoringEngine(
        source=source,
        alert_manager=AlertManager(sink=sink, throttle=ProbabilisticThrottle(0.0, random.Random(0))),
        interval=0.01,
        task_factory=factory,
    )
    engine.start()
    try:
        assert source.entered.wait(2.0)
        assert engine.stop()
        assert engine.tick_count == 0
    finally:
        source.release.set()

    tasks[0]._thread.join(2.0)
    assert not tasks[0]._thread.is_alive()
    assert engine.tick_count == 1
    assert engine.state is EngineState.STOPPED
    assert sink.messages[-1] == "Gas level simulation stopped"
