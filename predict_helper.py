import math
import numbers
import random

import numpy as np

from config import (
    HEURISTIC_DANGER_MAX,
    HEURISTIC_WARNING_MAX,
    MODEL_DANGER_SCORE,
    MODEL_WARNING_SCORE,
    STATUS_FLIP_RATE,
    TRAFFIC_POINTS,
)
from monitor_types import STATUS_ORDER, Status
from train_model import ModelUnavailableError


def validate_sample(sample):
    """Return a reason string when the sample is unusable, else None."""
    try:
        values = list(sample)
    except TypeError:
        return f"sample is not a sequence ({type(sample).__name__})"
    if len(values) != TRAFFIC_POINTS:
        return f"expected {TRAFFIC_POINTS} readings, got {len(values)}"
    for i, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, numbers.Real):
            return f"reading {i} is not numeric ({v!r})"
        if not math.isfinite(v):
            return f"reading {i} is not finite ({v!r})"
    return None


# -------------------------
# Classifiers: classify(input) -> Status
# -------------------------
class TrafficModelClassifier:
    """Scores the sample with the trained traffic model."""

    def __init__(self, model_getter, danger=MODEL_DANGER_SCORE, warning=MODEL_WARNING_SCORE):
        self._model = model_getter
        self.danger = danger
        self.warning = warning

    def score(self, sample) -> float:
        model = self._model()
        if model is None:
            raise ModelUnavailableError("traffic model is not loaded")
        raw = model.score([v / 100.0 for v in sample])
        return min(1.0, max(0.0, raw))

    def classify(self, sample) -> Status:
        score = self.score(sample)
        if score > self.danger:
            return Status.DANGER
        if score > self.warning:
            return Status.WARNING
        return Status.NORMAL


class HeuristicTrafficClassifier:
    """Peak-threshold rules, used when the model cannot score a sample."""

    def __init__(self, danger=HEURISTIC_DANGER_MAX, warning=HEURISTIC_WARNING_MAX):
        self.danger = danger
        self.warning = warning

    def classify(self, sample) -> Status:
        peak = max(sample)
        if peak > self.danger:
            return Status.DANGER
        if peak > self.warning:
            return Status.WARNING
        return Status.NORMAL


class DeviceModelClassifier:
    """Argmax over the device model's class probabilities."""

    def __init__(self, model_getter):
        self._model = model_getter

    def classify(self, frame) -> Status:
        model = self._model()
        if model is None:
            raise ModelUnavailableError("device model is not loaded")
        probs = np.asarray(model.predict_proba(frame), dtype=float)
        if probs.shape != (len(STATUS_ORDER),) or not np.all(np.isfinite(probs)):
            raise ValueError(f"unexpected device model output {probs!r}")
        # np.argmax returns the first index on ties
        return STATUS_ORDER[int(np.argmax(probs))]


class StochasticHoldClassifier:
    """
    Keeps the current status, except for an occasional jump to one of the
    other two statuses (picked uniformly).
    """

    def __init__(self, rng: random.Random = None, flip_rate: float = STATUS_FLIP_RATE):
        self.rng = rng or random.Random()
        self.flip_rate = flip_rate

    def classify(self, current: Status) -> Status:
        if self.rng.random() < self.flip_rate:
            return self.rng.choice([s for s in STATUS_ORDER if s is not current])
        return current


# -------------------------
# Predictor: model first, fallback on failure
# -------------------------
class Predictor:
    """
    Classifier front used by the monitor. Failures never leave this class:
    bad input gives Normal, model errors drop to the fallback classifier,
    and both are written to the event log as warnings.
    """

    def __init__(self, models, log, rng: random.Random = None):
        # models: anything exposing traffic_model / device_model attributes
        self.models = models
        self.log = log
        self.rng = rng or random.Random()
        self.traffic_model = TrafficModelClassifier(lambda: self.models.traffic_model)
        self.traffic_fallback = HeuristicTrafficClassifier()
        self.device_model = DeviceModelClassifier(lambda: self.models.device_model)
        self.device_fallback = StochasticHoldClassifier(self.rng)
        self.last_traffic_path = None
        self.last_device_path = None

    def classify_traffic(self, sample) -> Status:
        problem = validate_sample(sample)
        if problem:
            self.last_traffic_path = "rejected"
            self.log.warning(f"Traffic detection skipped: {problem}")
            return Status.NORMAL

        values = [float(v) for v in sample]
        try:
            status = self.traffic_model.classify(values)
            self.last_traffic_path = "model"
            return status
        except Exception as e:
            self.last_traffic_path = "heuristic"
            self.log.warning(f"Traffic detection failed: {e}")
            return self.traffic_fallback.classify(values)

    def classify_device(self, frame, current: Status = Status.NORMAL) -> Status:
        try:
            status = self.device_model.classify(frame)
            self.last_device_path = "model"
            return status
        except Exception as e:
            self.last_device_path = "hold"
            self.log.warning(f"Device image recognition failed: {e}")
            return self.device_fallback.classify(current)
