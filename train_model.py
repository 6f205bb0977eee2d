"""
train_model.py
Mock-trained models for the monitoring console.

What this script does:
- Builds the traffic anomaly scorer: a small MLP regressor fitted epoch by
  epoch on synthetic 10-point sequences (label 1 when one of the last three
  readings is above 80)
- Builds the device image classifier: a logistic regression over rendered
  device-panel frames, three classes Normal / Warning / Danger
- When run directly, trains both and prints a quick evaluation

Nothing is written to disk, the models only live as long as the process.
"""

import argparse

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score, classification_report, confusion_matrix
from sklearn.neural_network import MLPRegressor
import warnings

from config import (
    FRAMES_PER_CLASS,
    RND,
    TRAFFIC_BATCH_SIZE,
    TRAFFIC_EPOCHS,
    TRAINING_SAMPLES,
)
from dataset_generator import generate_frame_dataset, generate_training_data
from monitor_types import STATUS_ORDER

warnings.filterwarnings("ignore")

CLASS_LABELS = [s.name.title() for s in STATUS_ORDER]


class ModelUnavailableError(RuntimeError):
    """Raised when a released (or never built) model is asked to predict."""


class _ReleasableModel:
    name = "model"

    def __init__(self, estimator):
        self._estimator = estimator

    @property
    def released(self) -> bool:
        return self._estimator is None

    def release(self):
        self._estimator = None

    def _require(self):
        if self._estimator is None:
            raise ModelUnavailableError(f"{self.name} has been released")
        return self._estimator


class TrafficModel(_ReleasableModel):
    name = "traffic model"

    def score(self, normalized) -> float:
        """Raw anomaly score for one sequence of values already scaled to 0..1."""
        est = self._require()
        X = np.asarray(normalized, dtype=float).reshape(1, -1)
        return float(est.predict(X)[0])


class DeviceModel(_ReleasableModel):
    name = "device model"

    def predict_proba(self, frame) -> np.ndarray:
        """Probability per STATUS_ORDER class for a single frame."""
        est = self._require()
        X = frame_features(frame).reshape(1, -1)
        probs = est.predict_proba(X)[0]
        out = np.zeros(len(STATUS_ORDER))
        out[est.classes_] = probs
        return out


def frame_features(frames) -> np.ndarray:
    arr = np.asarray(frames, dtype=float) / 255.0
    if arr.ndim == 4:
        return arr.reshape(arr.shape[0], -1)
    return arr.reshape(-1)


def build_traffic_model(data: pd.DataFrame = None, epochs: int = TRAFFIC_EPOCHS,
                        batch_size: int = TRAFFIC_BATCH_SIZE, on_epoch_end=None,
                        random_state: int = RND) -> TrafficModel:
    """
    Fit the traffic scorer one epoch at a time so progress can be reported.
    on_epoch_end(epoch, loss) is called after every epoch (epoch is 0-based).
    """
    if data is None:
        data = generate_training_data(rng=np.random.RandomState(random_state))
    X = data.drop(columns=["label"]).to_numpy(dtype=float) / 100.0
    y = data["label"].to_numpy(dtype=float)

    reg = MLPRegressor(
        hidden_layer_sizes=(32,),
        batch_size=batch_size,
        learning_rate_init=0.001,
        random_state=random_state,
    )
    for epoch in range(epochs):
        reg.partial_fit(X, y)
        if on_epoch_end is not None:
            on_epoch_end(epoch, float(reg.loss_))
    return TrafficModel(reg)


def build_device_model(per_class: int = FRAMES_PER_CLASS, random_state: int = RND) -> DeviceModel:
    frames, labels = generate_frame_dataset(per_class, rng=np.random.RandomState(random_state))
    clf = LogisticRegression(max_iter=500)
    clf.fit(frame_features(frames), labels)
    return DeviceModel(clf)


def score_to_label(score: float, danger: float = 0.6, warning: float = 0.4) -> str:
    score = min(1.0, max(0.0, score))
    if score > danger:
        return "Danger"
    if score > warning:
        return "Warning"
    return "Normal"


def evaluate_traffic(model: TrafficModel, data: pd.DataFrame):
    X = data.drop(columns=["label"]).to_numpy(dtype=float) / 100.0
    scores = np.array([model.score(row) for row in X])
    flagged = (scores > 0.4).astype(int)
    acc = accuracy_score(data["label"], flagged)
    print("=== Traffic Model ===")
    print(f"Anomaly hit rate (score > 0.4): {acc:.4f}")
    print("Score bands:", pd.Series([score_to_label(s) for s in scores]).value_counts().to_dict())


def evaluate_device(model: DeviceModel, per_class: int, random_state: int):
    frames, labels = generate_frame_dataset(per_class, rng=np.random.RandomState(random_state + 1))
    y_test = labels
    y_pred = np.array([int(np.argmax(model.predict_proba(f))) for f in frames])
    print("=== Device Model ===")
    print(f"Accuracy: {accuracy_score(y_test, y_pred):.4f}")
    print(classification_report(y_test, y_pred, labels=[0, 1, 2], target_names=CLASS_LABELS))
    cm = confusion_matrix(y_test, y_pred, labels=[0, 1, 2])
    print("Confusion Matrix (rows=true, cols=pred):")
    print(pd.DataFrame(cm, index=CLASS_LABELS, columns=CLASS_LABELS))


def main(args):
    print("Generating synthetic traffic sequences...")
    data = generate_training_data(args.samples, rng=np.random.RandomState(args.seed))
    print("Dataset size:", data.shape)

    print("Training traffic model...")
    traffic = build_traffic_model(
        data,
        epochs=args.epochs,
        on_epoch_end=lambda e, loss: print(f"  epoch {e + 1} - loss: {loss:.4f}"),
        random_state=args.seed,
    )
    evaluate_traffic(traffic, generate_training_data(args.samples // 4, rng=np.random.RandomState(args.seed + 1)))

    print("Training device model...")
    device = build_device_model(args.frames_per_class, random_state=args.seed)
    evaluate_device(device, args.frames_per_class, args.seed)
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Train the mock traffic and device models and report how they do")
    parser.add_argument("--samples", type=int, default=TRAINING_SAMPLES, help="Number of synthetic traffic sequences")
    parser.add_argument("--epochs", type=int, default=TRAFFIC_EPOCHS, help="Traffic model epochs")
    parser.add_argument("--frames-per-class", type=int, default=FRAMES_PER_CLASS, help="Device frames per status")
    parser.add_argument("--seed", type=int, default=RND, help="Random seed")
    args = parser.parse_args()
    main(args)
