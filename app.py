# app.py - Monitoring Console Dashboard
import streamlit as st
import threading
import time
import pandas as pd
import numpy as np

from config import SPEEDS, DEFAULT_SPEED_MS, HEURISTIC_WARNING_MAX, HEURISTIC_DANGER_MAX
from dataset_generator import render_device_frame
from monitor_types import Severity, Status
from real_time_monitor import RealTimeMonitor

STATUS_ICON = {
    Status.NORMAL: "🟢",
    Status.WARNING: "🟠",
    Status.DANGER: "🔴",
}
SEVERITY_ICON = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.DANGER: "🚨",
}

# -------------------------
# Streamlit session initialization
# -------------------------
st.set_page_config(page_title="Industrial Monitoring Console", layout="wide")

if "monitor" not in st.session_state:
    monitor = RealTimeMonitor(speed_ms=DEFAULT_SPEED_MS)
    monitor.mount()
    st.session_state["monitor"] = monitor
if "loader_thread" not in st.session_state:
    st.session_state["loader_thread"] = None

monitor = st.session_state["monitor"]


def loading_in_progress():
    t = st.session_state["loader_thread"]
    return t is not None and t.is_alive()


# -------------------------
# Sidebar controls
# -------------------------
st.sidebar.title("Controls")

if st.sidebar.button("Initialize models", disabled=loading_in_progress()):
    t = threading.Thread(target=monitor.init_models, daemon=True)
    st.session_state["loader_thread"] = t
    t.start()

col_a, col_b = st.sidebar.columns(2)
if col_a.button("Start"):
    monitor.start_monitoring()
if col_b.button("Stop"):
    monitor.stop_monitoring()

speed_names = list(SPEEDS.keys())
current_name = next(k for k, v in SPEEDS.items() if v == monitor.interval_ms)
speed_name = st.sidebar.radio("Monitoring speed", speed_names, index=speed_names.index(current_name))
if SPEEDS[speed_name] != monitor.interval_ms:
    monitor.set_speed(SPEEDS[speed_name])

if st.sidebar.button("Reset system"):
    monitor.reset_system()
    st.sidebar.success("System reset, all state cleared.")

# -------------------------
# Main Dashboard Layout
# -------------------------
snap = monitor.snapshot()

st.title("🏭 Industrial Monitoring Console")
st.write(f"Mode: {'monitoring' if snap.is_monitoring else 'idle'} | Interval: {snap.selected_speed} ms")

if not snap.model_ready:
    st.progress(snap.model_load_progress / 100.0, text=f"Model loading: {snap.model_load_progress}%")

c1, c2, c3, c4 = st.columns(4)
c1.metric("Processed points", snap.processed_data_points)
c2.metric("Memory", f"{snap.memory_usage:.1f} MB")
c3.metric("Accuracy", f"{snap.accuracy:.1f}%")
c4.metric("Detection rate", f"{snap.anomaly_detection_rate:.1f}%")

tabs = st.tabs(["Overview", "Logs"])

# Overview
with tabs[0]:
    left, right = st.columns(2)
    with left:
        st.subheader("Device status")
        frame = render_device_frame(snap.device_status, np.random.RandomState(), size=160, noise=0)
        st.image(frame, caption=f"{STATUS_ICON[snap.device_status]} {snap.device_label}")
    with right:
        st.subheader("Network traffic")
        if snap.last_traffic:
            chart = pd.DataFrame({
                "traffic": list(snap.last_traffic),
                "warning": [HEURISTIC_WARNING_MAX] * len(snap.last_traffic),
                "danger": [HEURISTIC_DANGER_MAX] * len(snap.last_traffic),
            })
            st.line_chart(chart)
        else:
            st.info("No traffic data yet.")
        st.write(f"{STATUS_ICON[snap.traffic_status]} {snap.traffic_label}")

# Logs
with tabs[1]:
    st.subheader("Event log (most recent first)")
    if not snap.logs:
        st.info("No logs yet.")
    else:
        df = pd.DataFrame([e.to_dict() for e in snap.logs])
        df["severity"] = [f"{SEVERITY_ICON[e.severity]} {e.severity.value}" for e in snap.logs]
        st.dataframe(df[["timestamp", "severity", "message"]], use_container_width=True)
        csv_bytes = df.to_csv(index=False).encode("utf-8")
        st.download_button("Download logs CSV", data=csv_bytes, file_name="monitor_logs.csv", mime="text/csv")

# keep the page live while something is changing in the background
if snap.is_monitoring or loading_in_progress():
    time.sleep(0.5 if loading_in_progress() else min(snap.selected_speed / 1000.0, 1.0))
    st.rerun()
