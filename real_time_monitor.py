"""
real_time_monitor.py
Monitoring loop for the simulated industrial console.

Every tick renders a device frame and classifies it, generates a traffic
sample and classifies it, refreshes the console metrics, occasionally adds
a contextual log line, then schedules the next tick. The loop only runs
once the models are ready.

Run directly for a headless console session:
    python real_time_monitor.py --speed 1000 --ticks 10
"""

import argparse
import random
import threading
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from config import (
    CONTEXT_LOG_PROBABILITY,
    DEFAULT_SPEED_MS,
    INITIAL_ACCURACY,
    INITIAL_DETECTION_RATE,
    METRICS_REFRESH_EVERY,
    SPEEDS,
)
from dataset_generator import generate_device_frame, generate_traffic
from log_buffer import LogBuffer
from model_lifecycle import ModelLifecycle
from monitor_types import (
    DEVICE_STATUS_LABELS,
    STATUS_SEVERITY,
    TRAFFIC_STATUS_LABELS,
    LogEntry,
    Status,
)
from predict_helper import Predictor

CONTEXT_MESSAGES = {
    Status.NORMAL: [
        "System running normally, all components stable",
        "Network traffic fluctuating within normal range",
        "Device temperature stable in the safe zone",
    ],
    Status.WARNING: [
        "Traffic peak detected - monitoring continues",
        "Device CPU usage is elevated",
        "Slight network latency detected",
    ],
    Status.DANGER: [
        "Warning! Network storm detected!",
        "Device temperature over limit, inspect immediately!",
        "Critical: network connection lost",
    ],
}


class TimerScheduler:
    """Runs fn once after delay_s seconds; the returned handle has cancel()."""

    def schedule(self, delay_s: float, fn):
        timer = threading.Timer(delay_s, fn)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(frozen=True)
class MonitorSnapshot:
    device_status: Status
    device_label: str
    traffic_status: Status
    traffic_label: str
    last_traffic: Tuple[float, ...]
    model_ready: bool
    model_load_progress: int
    is_monitoring: bool
    selected_speed: int
    logs: Tuple[LogEntry, ...]
    processed_data_points: int
    memory_usage: float
    accuracy: float
    anomaly_detection_rate: float


class RealTimeMonitor:
    def __init__(self, lifecycle: ModelLifecycle = None, log: LogBuffer = None, scheduler=None,
                 rng: random.Random = None, np_rng=None, device_sink=None, traffic_sink=None,
                 speed_ms: int = DEFAULT_SPEED_MS):
        self.log = log if log is not None else LogBuffer()
        self.lifecycle = lifecycle if lifecycle is not None else ModelLifecycle(self.log)
        self.scheduler = scheduler or TimerScheduler()
        self.rng = rng or random.Random()
        self.np_rng = np_rng if np_rng is not None else np.random.RandomState()
        self.predictor = Predictor(self.lifecycle, self.log, self.rng)
        # device_sink(status, label), traffic_sink(sample, status)
        self.device_sink = device_sink
        self.traffic_sink = traffic_sink

        self._lock = threading.RLock()
        self._pending = None
        self._token = None
        self.running = False
        self.interval_ms = DEFAULT_SPEED_MS
        self.set_speed(speed_ms)
        self._reset_fields()

    def _reset_fields(self):
        self.device_status = Status.NORMAL
        self.traffic_status = Status.NORMAL
        self.last_traffic: List[float] = []
        self.processed_data_points = 0
        self.memory_usage = 0.0
        self.accuracy = INITIAL_ACCURACY
        self.anomaly_detection_rate = INITIAL_DETECTION_RATE

    # -------------------------
    # Entry points
    # -------------------------
    def mount(self):
        """Initial draw and start-up messages, called once by the front end."""
        self._emit_device()
        self._emit_traffic([])
        self.log.info("System initialization complete")
        self.log.info('Click "Initialize models" to load the machine learning models')

    def init_models(self) -> bool:
        # reloading swaps the models out from under a running loop
        self.stop()
        return self.lifecycle.initialize()

    def set_speed(self, speed_ms: int):
        if speed_ms not in SPEEDS.values():
            raise ValueError(f"speed must be one of {sorted(SPEEDS.values())} ms, got {speed_ms!r}")
        self.interval_ms = int(speed_ms)

    def start(self) -> bool:
        with self._lock:
            if not self.lifecycle.ready:
                self.log.danger("Error: models are not initialized!")
                return False
            if self.running:
                return False
            self.running = True
            self.log.info("Starting monitoring task...")
            self.tick()
            return True

    def stop(self) -> bool:
        with self._lock:
            if not self.running:
                return False
            self.running = False
            self._cancel_pending()
            self.log.info("Monitoring task stopped")
            return True

    def reset(self):
        with self._lock:
            self.stop()
            self._reset_fields()
            self.log.clear()
            self.lifecycle.reset()
            self._emit_device()
            self._emit_traffic([])
            self.log.info("System reset, all state cleared!")

    start_monitoring = start
    stop_monitoring = stop
    reset_system = reset

    # -------------------------
    # Monitoring loop
    # -------------------------
    def tick(self):
        with self._lock:
            if not self.running:
                return
            self._run_tick()

    def _on_timer(self, token):
        with self._lock:
            # a timer that fired before stop() cancelled it holds an old token
            if token is not self._token or not self.running:
                return
            self._pending = None
            self._token = None
            self._run_tick()

    def _cancel_pending(self):
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._token = None

    def _schedule_next(self):
        self._cancel_pending()
        token = object()
        self._token = token
        self._pending = self.scheduler.schedule(self.interval_ms / 1000.0, lambda: self._on_timer(token))

    def _run_tick(self):
        self.processed_data_points += 1

        frame, _ = generate_device_frame(self.device_status, self.np_rng)
        self.device_status = self.predictor.classify_device(frame, self.device_status)
        self._emit_device()

        sample = generate_traffic(self.np_rng)
        self.traffic_status = self.predictor.classify_traffic(sample)
        self.last_traffic = sample
        self._emit_traffic(sample)

        self._update_metrics()

        if self.rng.random() < CONTEXT_LOG_PROBABILITY:
            message = self.rng.choice(CONTEXT_MESSAGES[self.traffic_status])
            self.log.add(message, STATUS_SEVERITY[self.traffic_status])

        if self.running:
            self._schedule_next()

    def _update_metrics(self):
        self.memory_usage = round(self.rng.uniform(8, 10), 1)
        if self.processed_data_points % METRICS_REFRESH_EVERY == 0:
            self.accuracy = max(85.0, min(99.0, self.accuracy + self.rng.uniform(-1, 1)))
            self.anomaly_detection_rate = max(85.0, min(97.0, self.anomaly_detection_rate + self.rng.uniform(-1, 1)))

    def _emit_device(self):
        if self.device_sink is None:
            return
        try:
            self.device_sink(self.device_status, DEVICE_STATUS_LABELS[self.device_status])
        except Exception as e:
            self.log.warning(f"Device view update failed: {e}")

    def _emit_traffic(self, sample):
        if self.traffic_sink is None:
            return
        try:
            self.traffic_sink(list(sample), self.traffic_status)
        except Exception as e:
            self.log.warning(f"Traffic view update failed: {e}")

    # -------------------------
    # Read-only view
    # -------------------------
    @property
    def is_monitoring(self) -> bool:
        return self.running

    def snapshot(self) -> MonitorSnapshot:
        with self._lock:
            return MonitorSnapshot(
                device_status=self.device_status,
                device_label=DEVICE_STATUS_LABELS[self.device_status],
                traffic_status=self.traffic_status,
                traffic_label=TRAFFIC_STATUS_LABELS[self.traffic_status],
                last_traffic=tuple(self.last_traffic),
                model_ready=self.lifecycle.ready,
                model_load_progress=self.lifecycle.progress,
                is_monitoring=self.running,
                selected_speed=self.interval_ms,
                logs=tuple(self.log.entries()),
                processed_data_points=self.processed_data_points,
                memory_usage=self.memory_usage,
                accuracy=round(self.accuracy, 1),
                anomaly_detection_rate=round(self.anomaly_detection_rate, 1),
            )


class EchoLogBuffer(LogBuffer):
    """LogBuffer that also prints each entry, for the console runner."""

    def append(self, entry: LogEntry):
        super().append(entry)
        print(f"{entry.format()} ({entry.severity.value})", flush=True)


def main(args):
    done = threading.Event()
    log = EchoLogBuffer()

    def show_device(status, label):
        print(f"  device : {label}", flush=True)

    def show_traffic(sample, status):
        if not sample:
            return
        print(f"  traffic: {[round(v, 1) for v in sample]} -> {status.value}", flush=True)
        if monitor.processed_data_points >= args.ticks:
            done.set()

    lifecycle = ModelLifecycle(log, seed=args.seed)
    monitor = RealTimeMonitor(
        lifecycle=lifecycle,
        log=log,
        rng=random.Random(args.seed),
        np_rng=np.random.RandomState(args.seed),
        device_sink=show_device,
        traffic_sink=show_traffic,
        speed_ms=args.speed,
    )
    monitor.mount()
    if not monitor.init_models():
        return 1

    print(" Real-Time Monitor Started (interval:", args.speed, "ms)")
    print("Press CTRL + C to stop.\n")
    monitor.start_monitoring()
    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    monitor.stop_monitoring()

    snap = monitor.snapshot()
    print(
        f"\nProcessed {snap.processed_data_points} points | memory {snap.memory_usage} MB | "
        f"accuracy {snap.accuracy}% | detection rate {snap.anomaly_detection_rate}%"
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the simulated monitoring loop in the console")
    parser.add_argument("--speed", type=int, default=DEFAULT_SPEED_MS, choices=sorted(SPEEDS.values()),
                        help="Milliseconds between monitoring ticks")
    parser.add_argument("--ticks", type=int, default=10, help="Stop after this many ticks")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args()
    raise SystemExit(main(args))
