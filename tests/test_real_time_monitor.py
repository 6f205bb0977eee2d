import random
import threading

import numpy as np
import pytest

from conftest import BrokenModel
from monitor_types import Severity, Status
from real_time_monitor import CONTEXT_MESSAGES, RealTimeMonitor, TimerScheduler


class SinkRecorder:
    def __init__(self):
        self.device = []
        self.traffic = []

    def on_device(self, status, label):
        self.device.append((status, label))

    def on_traffic(self, sample, status):
        self.traffic.append((sample, status))


@pytest.fixture
def sinks():
    return SinkRecorder()


@pytest.fixture
def monitor(fast_lifecycle, log, scheduler, rng, np_rng, sinks):
    return RealTimeMonitor(
        lifecycle=fast_lifecycle,
        log=log,
        scheduler=scheduler,
        rng=rng,
        np_rng=np_rng,
        device_sink=sinks.on_device,
        traffic_sink=sinks.on_traffic,
    )


@pytest.fixture
def ready_monitor(monitor):
    assert monitor.init_models()
    monitor.log.clear()
    return monitor


def test_initial_state(monitor):
    snap = monitor.snapshot()
    assert snap.is_monitoring is False
    assert snap.model_ready is False
    assert snap.device_status is Status.NORMAL
    assert snap.traffic_status is Status.NORMAL
    assert snap.selected_speed == 2000
    assert snap.logs == ()


def test_mount_draws_empty_series_and_logs(monitor, sinks):
    monitor.mount()
    assert sinks.device == [(Status.NORMAL, "Operating normally")]
    assert sinks.traffic == [([], Status.NORMAL)]
    assert len(monitor.log) == 2


def test_start_without_ready_models_is_refused(monitor, scheduler, sinks):
    assert monitor.start() is False
    assert monitor.running is False
    assert len(monitor.log) == 1
    assert monitor.log.entries()[0].severity is Severity.DANGER
    assert monitor.processed_data_points == 0
    assert scheduler.handles == []
    assert sinks.traffic == []


def test_start_runs_one_immediate_tick(ready_monitor, scheduler, sinks):
    assert ready_monitor.start() is True
    assert ready_monitor.running is True
    assert ready_monitor.processed_data_points == 1
    assert len(sinks.device) == 1
    assert len(sinks.traffic) == 1
    assert len(sinks.traffic[0][0]) == 10
    # next tick is only scheduled, not run
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].delay == 2.0
    messages = [e.message for e in ready_monitor.log.entries()]
    assert "Starting monitoring task..." in messages


def test_start_twice_is_a_noop(ready_monitor, scheduler):
    ready_monitor.start()
    assert ready_monitor.start() is False
    assert ready_monitor.processed_data_points == 1
    assert len(scheduler.pending) == 1


def test_ticks_reschedule_at_selected_speed(ready_monitor, scheduler):
    ready_monitor.set_speed(1000)
    ready_monitor.start()
    for _ in range(5):
        scheduler.fire_next()
    assert ready_monitor.processed_data_points == 6
    assert len(scheduler.pending) == 1
    assert all(h.delay == 1.0 for h in scheduler.handles)


def test_stop_cancels_pending_tick(ready_monitor, scheduler):
    ready_monitor.start()
    handle = scheduler.pending[0]
    assert ready_monitor.stop() is True
    assert handle.cancelled
    assert scheduler.pending == []
    assert ready_monitor.log.entries()[0].message == "Monitoring task stopped"

    # a tick that fires anyway after stop does nothing
    handle.fn()
    assert ready_monitor.processed_data_points == 1
    assert scheduler.pending == []


def test_stop_when_stopped_is_a_noop(ready_monitor):
    assert ready_monitor.stop() is False
    assert len(ready_monitor.log) == 0


def test_stop_during_tick_prevents_reschedule(ready_monitor, scheduler, sinks):
    def stop_from_sink(sample, status):
        ready_monitor.stop()

    ready_monitor.traffic_sink = stop_from_sink
    ready_monitor.start()
    assert ready_monitor.running is False
    assert scheduler.handles == []


def test_tick_when_not_running_does_nothing(ready_monitor, sinks):
    ready_monitor.tick()
    assert ready_monitor.processed_data_points == 0
    assert sinks.device == []


def test_reset_from_running_state(ready_monitor, scheduler):
    ready_monitor.start()
    for _ in range(3):
        scheduler.fire_next()
    ready_monitor.device_status = Status.DANGER
    ready_monitor.traffic_status = Status.WARNING
    traffic_model = ready_monitor.lifecycle.traffic_model

    ready_monitor.reset()

    snap = ready_monitor.snapshot()
    assert snap.is_monitoring is False
    assert snap.device_status is Status.NORMAL
    assert snap.traffic_status is Status.NORMAL
    assert snap.model_ready is False
    assert snap.model_load_progress == 0
    assert snap.processed_data_points == 0
    assert snap.accuracy == 92.0
    assert snap.anomaly_detection_rate == 88.0
    assert [e.message for e in snap.logs] == ["System reset, all state cleared!"]
    assert scheduler.pending == []
    assert traffic_model.released


@pytest.mark.parametrize("prepare", ["fresh", "ready", "stopped"])
def test_reset_from_any_state(monitor, prepare):
    if prepare in ("ready", "stopped"):
        monitor.init_models()
    if prepare == "stopped":
        monitor.start()
        monitor.stop()
    monitor.reset()
    snap = monitor.snapshot()
    assert (snap.is_monitoring, snap.model_ready, snap.model_load_progress) == (False, False, 0)
    assert len(snap.logs) == 1


def test_start_after_reset_requires_reinit(ready_monitor):
    ready_monitor.reset()
    assert ready_monitor.start() is False
    assert ready_monitor.log.entries()[0].severity is Severity.DANGER


def test_set_speed_only_accepts_known_values(monitor):
    for ms in (1000, 2000, 3000):
        monitor.set_speed(ms)
        assert monitor.snapshot().selected_speed == ms
    for bad in (0, 1500, 5000, "fast"):
        with pytest.raises(ValueError):
            monitor.set_speed(bad)
    assert monitor.interval_ms == 3000


def test_context_messages_follow_traffic_status(ready_monitor, scheduler):
    ready_monitor.start()
    for _ in range(199):
        scheduler.fire_next()
    pool = {m: s for s, msgs in CONTEXT_MESSAGES.items() for m in msgs}
    context = [e for e in ready_monitor.log.entries() if e.message in pool]
    # probability 0.2 per tick over 200 ticks
    assert 15 < len(context) < 70
    # stub traffic model always scores Normal
    assert all(pool[e.message] is Status.NORMAL for e in context)
    assert all(e.severity is Severity.INFO for e in context)


def test_danger_traffic_logs_danger_context(ready_monitor, scheduler):
    ready_monitor.lifecycle.traffic_model.value = 0.95
    ready_monitor.rng = random.Random(0)
    ready_monitor.start()
    for _ in range(60):
        scheduler.fire_next()
    assert ready_monitor.traffic_status is Status.DANGER
    danger_msgs = set(CONTEXT_MESSAGES[Status.DANGER])
    context = [e for e in ready_monitor.log.entries() if e.message in danger_msgs]
    assert context
    assert all(e.severity is Severity.DANGER for e in context)


def test_failures_fall_back_and_keep_running(ready_monitor, scheduler, sinks):
    ready_monitor.lifecycle.traffic_model = BrokenModel()
    ready_monitor.lifecycle.device_model = BrokenModel()
    ready_monitor.start()
    for _ in range(9):
        scheduler.fire_next()
    assert ready_monitor.processed_data_points == 10
    assert ready_monitor.running
    assert ready_monitor.predictor.last_traffic_path == "heuristic"
    assert ready_monitor.predictor.last_device_path == "hold"
    assert ready_monitor.log.count(Severity.WARNING) >= 20
    assert all(status in set(Status) for _, status in sinks.traffic)


def test_device_status_tracks_model_output(ready_monitor, sinks):
    ready_monitor.lifecycle.device_model.probs = np.array([0.1, 0.1, 0.8])
    ready_monitor.start()
    assert ready_monitor.device_status is Status.DANGER
    assert sinks.device[-1] == (Status.DANGER, "Critical fault")


def test_metrics_update(ready_monitor, scheduler):
    ready_monitor.start()
    for _ in range(49):
        scheduler.fire_next()
    snap = ready_monitor.snapshot()
    assert snap.processed_data_points == 50
    assert 8.0 <= snap.memory_usage <= 10.0
    assert 85.0 <= snap.accuracy <= 99.0
    assert 85.0 <= snap.anomaly_detection_rate <= 97.0
    assert snap.accuracy != 92.0


def test_sink_errors_do_not_stop_the_loop(ready_monitor, scheduler):
    def broken_sink(*args):
        raise RuntimeError("canvas gone")

    ready_monitor.device_sink = broken_sink
    ready_monitor.start()
    scheduler.fire_next()
    assert ready_monitor.processed_data_points == 2
    assert ready_monitor.log.count(Severity.WARNING) == 2


def test_timer_scheduler_runs_and_cancels():
    fired = threading.Event()
    TimerScheduler().schedule(0.01, fired.set)
    assert fired.wait(2.0)

    skipped = threading.Event()
    handle = TimerScheduler().schedule(0.5, skipped.set)
    handle.cancel()
    assert not skipped.wait(0.7)


def test_real_timer_loop_stops(fast_lifecycle, log):
    seen = threading.Event()
    counter = []

    def on_traffic(sample, status):
        counter.append(status)
        if len(counter) >= 2:
            seen.set()

    mon = RealTimeMonitor(lifecycle=fast_lifecycle, log=log, traffic_sink=on_traffic, speed_ms=1000)
    mon.init_models()
    mon.start()
    assert seen.wait(5.0)
    mon.stop()
    count = mon.processed_data_points
    assert not threading.Event().wait(1.3)
    assert mon.processed_data_points == count


def test_stale_timer_after_restart_does_not_start_second_chain(ready_monitor, scheduler):
    ready_monitor.start()
    stale = scheduler.pending[0]
    ready_monitor.stop()
    ready_monitor.start()
    assert ready_monitor.processed_data_points == 2

    # the old timer already fired before stop() could cancel it
    stale.fn()

    assert ready_monitor.processed_data_points == 2
    assert len(scheduler.pending) == 1
    scheduler.fire_next()
    assert ready_monitor.processed_data_points == 3
    assert len(scheduler.pending) == 1


def test_manual_tick_keeps_a_single_pending_handle(ready_monitor, scheduler):
    ready_monitor.start()
    first = scheduler.pending[0]
    ready_monitor.tick()
    assert first.cancelled
    assert len(scheduler.pending) == 1
    first.fn()
    assert ready_monitor.processed_data_points == 2


def test_reinit_while_monitoring_stops_the_loop_first(ready_monitor, scheduler):
    ready_monitor.start()
    old_traffic = ready_monitor.lifecycle.traffic_model
    assert ready_monitor.init_models() is True
    assert ready_monitor.running is False
    assert scheduler.pending == []
    assert old_traffic.released
    assert ready_monitor.lifecycle.ready
    messages = [e.message for e in ready_monitor.log.entries()]
    assert "Monitoring task stopped" in messages
    assert ready_monitor.log.count(Severity.WARNING) == 0
