"""
monitor_types.py
Shared value types for the monitoring console: statuses, log severities
and immutable log entries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Status(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def rank(self) -> int:
        return STATUS_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Status):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Status):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Status):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Status):
            return NotImplemented
        return self.rank >= other.rank


# index order doubles as the class index of the device image model
STATUS_ORDER = [Status.NORMAL, Status.WARNING, Status.DANGER]


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


DEVICE_STATUS_LABELS = {
    Status.NORMAL: "Operating normally",
    Status.WARNING: "Minor anomaly",
    Status.DANGER: "Critical fault",
}

TRAFFIC_STATUS_LABELS = {
    Status.NORMAL: "Traffic normal",
    Status.WARNING: "Traffic elevated",
    Status.DANGER: "Network storm",
}

# severity used when a status-driven message is written to the log
STATUS_SEVERITY = {
    Status.NORMAL: Severity.INFO,
    Status.WARNING: Severity.WARNING,
    Status.DANGER: Severity.DANGER,
}


@dataclass(frozen=True)
class LogEntry:
    message: str
    severity: Severity = Severity.INFO
    timestamp: datetime = field(default_factory=datetime.now)

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "message": self.message,
            "severity": self.severity.value,
        }
