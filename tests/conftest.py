import random

import numpy as np
import pytest

from log_buffer import LogBuffer
from model_lifecycle import ModelLifecycle
from train_model import ModelUnavailableError


class FakeHandle:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks instead of starting timers."""

    def __init__(self):
        self.handles = []

    def schedule(self, delay_s, fn):
        handle = FakeHandle(delay_s, fn)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_next(self):
        handle = self.pending[-1]
        handle.cancelled = True
        handle.fn()
        return handle


class StubTrafficModel:
    def __init__(self, score=0.0):
        self.value = score
        self.released = False
        self.calls = []

    def score(self, normalized):
        self.calls.append(list(normalized))
        return self.value

    def release(self):
        self.released = True


class StubDeviceModel:
    def __init__(self, probs=(1.0, 0.0, 0.0)):
        self.probs = np.array(probs, dtype=float)
        self.released = False

    def predict_proba(self, frame):
        return self.probs

    def release(self):
        self.released = True


class BrokenModel:
    """Fails every prediction, as a shape or runtime error would."""

    released = False

    def score(self, normalized):
        raise ValueError("input shape mismatch")

    def predict_proba(self, frame):
        raise ModelUnavailableError("device model has been released")

    def release(self):
        self.released = True


class StaticModels:
    def __init__(self, traffic_model=None, device_model=None):
        self.traffic_model = traffic_model
        self.device_model = device_model


@pytest.fixture
def log():
    return LogBuffer()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def np_rng():
    return np.random.RandomState(1234)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def fast_lifecycle(log):
    """Lifecycle with instant stub builders and no device step delay."""
    built = {}

    def traffic_builder(epochs, on_epoch_end, random_state):
        for epoch in range(epochs):
            on_epoch_end(epoch, 0.25 - epoch * 0.01)
        built["traffic"] = StubTrafficModel(0.1)
        return built["traffic"]

    def device_builder(per_class, random_state):
        built["device"] = StubDeviceModel()
        return built["device"]

    lc = ModelLifecycle(
        log,
        step_delay=0,
        traffic_builder=traffic_builder,
        device_builder=device_builder,
        sleep=lambda s: None,
    )
    lc.built = built
    return lc
