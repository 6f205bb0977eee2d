"""
config.py
Tunables for the monitoring console. A few can be overridden through
environment variables (MONITOR_SPEED_MS, TRAINING_SAMPLES, FRAMES_PER_CLASS,
DEVICE_STEP_DELAY_S).
"""

import os

# -----------------------------
# LOG BUFFER
# -----------------------------
LOG_CAPACITY = 100

# -----------------------------
# MONITORING SPEED (ms between ticks)
# -----------------------------
SPEEDS = {
    "Slow": 3000,
    "Medium": 2000,
    "Fast": 1000,
}
DEFAULT_SPEED_MS = int(os.getenv("MONITOR_SPEED_MS", "2000"))

# -----------------------------
# SYNTHETIC DATA
# -----------------------------
RND = 42
TRAFFIC_POINTS = 10
ANOMALY_RATE = 0.1          # per-point chance of a traffic spike
DEVICE_DRIFT_RATE = 0.1     # chance a rendered frame shows another status
FRAME_SIZE = 32

# -----------------------------
# MOCK TRAINING
# -----------------------------
TRAINING_SAMPLES = int(os.getenv("TRAINING_SAMPLES", "1000"))
TRAFFIC_EPOCHS = 10
TRAFFIC_BATCH_SIZE = 16
FRAMES_PER_CLASS = int(os.getenv("FRAMES_PER_CLASS", "40"))
DEVICE_PROGRESS_STEP = 5
DEVICE_STEP_DELAY_S = float(os.getenv("DEVICE_STEP_DELAY_S", "0.1"))

# -----------------------------
# CLASSIFIER THRESHOLDS
# -----------------------------
MODEL_DANGER_SCORE = 0.6
MODEL_WARNING_SCORE = 0.4
HEURISTIC_DANGER_MAX = 85
HEURISTIC_WARNING_MAX = 70
STATUS_FLIP_RATE = 0.1      # device fallback: chance of leaving current status

# -----------------------------
# MONITOR LOOP
# -----------------------------
CONTEXT_LOG_PROBABILITY = 0.2
METRICS_REFRESH_EVERY = 50
INITIAL_ACCURACY = 92.0
INITIAL_DETECTION_RATE = 88.0
