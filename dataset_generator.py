"""
dataset_generator.py
Synthetic inputs for the monitoring console:
  - 10-point network traffic samples (percent utilisation)
  - rendered device-panel frames for the image model
  - labelled training sets for the mock-trained models
"""

import numpy as np
import pandas as pd

from config import (
    ANOMALY_RATE,
    DEVICE_DRIFT_RATE,
    FRAME_SIZE,
    FRAMES_PER_CLASS,
    RND,
    TRAFFIC_POINTS,
    TRAINING_SAMPLES,
)
from monitor_types import STATUS_ORDER, Status

# -----------------------------
# FRAME PALETTE
# -----------------------------
BACKGROUND = {
    Status.NORMAL: (0xE8, 0xF5, 0xE9),
    Status.WARNING: (0xFF, 0xF8, 0xE1),
    Status.DANGER: (0xFF, 0xEB, 0xEE),
}
INDICATOR = {
    Status.NORMAL: (0x4C, 0xAF, 0x50),
    Status.WARNING: (0xFF, 0x98, 0x00),
    Status.DANGER: (0xF4, 0x43, 0x36),
}
DEVICE_BODY = (0x54, 0x6E, 0x7A)
DEFECT = (0xD3, 0x2F, 0x2F)


def _rng(rng):
    return rng if rng is not None else np.random.RandomState()


# -----------------------------
# TRAFFIC
# -----------------------------
def generate_traffic(rng=None):
    """
    One traffic sample of TRAFFIC_POINTS readings.

    Baseline sits in [30, 45) with +/-5 jitter per point. Each point has an
    ANOMALY_RATE chance of a spike, mild (+25..45) or severe (+50..90),
    capped at 100. There is no lower cap, jitter can push a point below 0.
    """
    rng = _rng(rng)
    base = 30 + rng.uniform() * 15
    data = []
    for _ in range(TRAFFIC_POINTS):
        value = base + rng.uniform() * 10 - 5
        if rng.uniform() < ANOMALY_RATE:
            if rng.uniform() < 0.5:
                value += 25 + rng.uniform() * 20
            else:
                value += 50 + rng.uniform() * 40
        data.append(float(min(value, 100.0)))
    return data


def generate_training_data(n: int = TRAINING_SAMPLES, rng=None) -> pd.DataFrame:
    """
    Training set for the traffic model: n random sequences in [0, 100),
    labelled anomalous (1) when any of the last three readings exceeds 80.
    """
    rng = _rng(rng)
    values = rng.uniform(0, 100, size=(n, TRAFFIC_POINTS))
    labels = (values[:, -3:] > 80).any(axis=1).astype(int)
    df = pd.DataFrame(values, columns=[f"t{i}" for i in range(TRAFFIC_POINTS)])
    df["label"] = labels
    return df


# -----------------------------
# DEVICE FRAMES
# -----------------------------
def render_device_frame(status: Status, rng=None, size: int = FRAME_SIZE, noise: float = 6.0):
    """Draw the device panel for a status as an RGB uint8 array."""
    rng = _rng(rng)
    frame = np.empty((size, size, 3), dtype=np.float64)
    frame[:, :] = BACKGROUND[status]

    lo, hi = int(size * 0.2), int(size * 0.8)
    frame[lo:hi, lo:hi] = DEVICE_BODY

    # indicator light, upper right of the panel
    cy, cx = int(size * 0.3), int(size * 0.8)
    r = max(1, int(round(size * 0.04)))
    yy, xx = np.ogrid[:size, :size]
    light = (yy - cy) ** 2 + (xx - cx) ** 2 <= r * r
    frame[light] = INDICATOR[status]

    if status is Status.WARNING:
        # blinking crack, visible about half of the time
        if rng.uniform() < 0.5:
            _draw_line(frame, (0.35, 0.4), (0.5, 0.6), DEFECT)
    elif status is Status.DANGER:
        _draw_line(frame, (0.35, 0.35), (0.65, 0.65), DEFECT)
        _draw_line(frame, (0.35, 0.65), (0.65, 0.35), DEFECT)

    if noise:
        frame += rng.normal(0, noise, size=frame.shape)
    return frame.clip(0, 255).astype(np.uint8)


def _draw_line(frame, start, end, color, width: int = 1):
    size = frame.shape[0]
    (y0, x0), (y1, x1) = start, end
    steps = size * 2
    for t in np.linspace(0.0, 1.0, steps):
        y = int((y0 + (y1 - y0) * t) * size)
        x = int((x0 + (x1 - x0) * t) * size)
        frame[max(0, y - width + 1):y + width, max(0, x - width + 1):x + width] = color


def generate_device_frame(current: Status, rng=None):
    """
    Frame for the next monitoring tick. Mostly shows the current device
    status; with DEVICE_DRIFT_RATE it shows one of the other two, which is
    how faults and recoveries enter the simulation.

    Returns (frame, shown_status).
    """
    rng = _rng(rng)
    shown = current
    if rng.uniform() < DEVICE_DRIFT_RATE:
        others = [s for s in STATUS_ORDER if s is not current]
        shown = others[rng.randint(len(others))]
    return render_device_frame(shown, rng), shown


def generate_frame_dataset(per_class: int = FRAMES_PER_CLASS, rng=None):
    """Labelled frames for every status; labels are STATUS_ORDER indices."""
    rng = _rng(rng)
    frames, labels = [], []
    for idx, status in enumerate(STATUS_ORDER):
        for _ in range(per_class):
            frames.append(render_device_frame(status, rng))
            labels.append(idx)
    return np.stack(frames), np.array(labels)


if __name__ == "__main__":
    rng = np.random.RandomState(RND)
    df = generate_training_data(rng=rng)
    print(f"[+] Traffic training set: {len(df)} rows, anomalous={int(df['label'].sum())}")
    print("[+] Sample traffic:", [round(v, 1) for v in generate_traffic(rng)])
    X, y = generate_frame_dataset(rng=rng)
    print(f"[+] Frame set: {X.shape}, per class={np.bincount(y).tolist()}")
