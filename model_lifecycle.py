"""
model_lifecycle.py
Loads the two models and tracks load progress. Monitoring may only start
once this reports ready.

Models are only published once the whole load succeeds; a reset during
a load discards whatever that load built.

Progress: traffic model 0 -> 50 (one step per training epoch),
device model 50 -> 100 in steps of 5.
"""

import threading
import time
from enum import Enum

from config import DEVICE_PROGRESS_STEP, DEVICE_STEP_DELAY_S, FRAMES_PER_CLASS, RND, TRAFFIC_EPOCHS
from train_model import build_device_model, build_traffic_model


class LoadCancelled(Exception):
    """The load was superseded by a reset."""


class LoadState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class ModelLifecycle:
    def __init__(self, log, epochs: int = TRAFFIC_EPOCHS, frames_per_class: int = FRAMES_PER_CLASS,
                 step_delay: float = DEVICE_STEP_DELAY_S, seed: int = RND,
                 traffic_builder=build_traffic_model, device_builder=build_device_model,
                 sleep=time.sleep):
        self.log = log
        self.epochs = epochs
        self.frames_per_class = frames_per_class
        self.step_delay = step_delay
        self.seed = seed
        self._build_traffic = traffic_builder
        self._build_device = device_builder
        self._sleep = sleep
        self._lock = threading.Lock()

        self.state = LoadState.UNINITIALIZED
        self.progress = 0
        self.traffic_model = None
        self.device_model = None
        # reset() bumps the generation; a load holding an older one gives up
        self._generation = 0

    @property
    def ready(self) -> bool:
        return self.state is LoadState.READY

    def _advance(self, gen: int, value: int):
        if self._generation != gen:
            raise LoadCancelled()
        # progress never moves backwards inside a load cycle
        self.progress = max(self.progress, min(100, int(value)))

    def initialize(self) -> bool:
        with self._lock:
            if self.state is LoadState.LOADING:
                self.log.warning("Model loading already in progress")
                return False
            self.state = LoadState.LOADING
            gen = self._generation
            self.release()
            self.progress = 0

        self.log.info("Loading machine learning models...")
        built = {}
        try:
            built["traffic"] = self._load_traffic(gen)
            built["device"] = self._load_device(gen)
        except LoadCancelled:
            self._discard(built)
            return False
        except Exception as e:
            self._discard(built)
            with self._lock:
                if self._generation != gen:
                    return False
                self.progress = 0
                self.state = LoadState.UNINITIALIZED
            self.log.danger(f"Model loading failed: {e}")
            return False

        with self._lock:
            if self._generation != gen:
                self._discard(built)
                return False
            self.traffic_model = built["traffic"]
            self.device_model = built["device"]
            self.state = LoadState.READY
        self.log.info("All models loaded, system ready!")
        return True

    def _load_traffic(self, gen: int):
        self.log.info("Creating traffic anomaly model...")

        def on_epoch_end(epoch, loss):
            self._advance(gen, min(50, (epoch + 1) * 10))
            self.log.info(f"Traffic model training (epoch {epoch + 1}) - Loss: {loss:.4f}")

        model = self._build_traffic(
            epochs=self.epochs, on_epoch_end=on_epoch_end, random_state=self.seed
        )
        try:
            self._advance(gen, 50)
        except LoadCancelled:
            model.release()
            raise
        return model

    def _load_device(self, gen: int):
        self.log.info("Creating device status model...")
        model = self._build_device(self.frames_per_class, random_state=self.seed)
        self.log.info("Device image model training...")
        try:
            while self.progress < 100:
                self._sleep(self.step_delay)
                self._advance(gen, self.progress + DEVICE_PROGRESS_STEP)
        except LoadCancelled:
            model.release()
            raise
        return model

    @staticmethod
    def _discard(built):
        for model in built.values():
            model.release()

    def release(self):
        for model in (self.traffic_model, self.device_model):
            if model is not None:
                model.release()
        self.traffic_model = None
        self.device_model = None

    def reset(self):
        with self._lock:
            self._generation += 1
            self.release()
            self.state = LoadState.UNINITIALIZED
            self.progress = 0
