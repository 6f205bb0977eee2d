from collections import deque
from typing import List

from config import LOG_CAPACITY
from monitor_types import LogEntry, Severity


class LogBuffer:
    """
    Bounded in-memory event log, newest entry first.
    Adding to a full buffer drops the oldest entry.
    """

    def __init__(self, capacity: int = LOG_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)

    def add(self, message: str, severity: Severity = Severity.INFO) -> LogEntry:
        entry = LogEntry(message=message, severity=severity)
        self.append(entry)
        return entry

    def append(self, entry: LogEntry):
        # appendleft on a full deque(maxlen) discards from the right, i.e. the oldest
        self._entries.appendleft(entry)

    def info(self, message: str) -> LogEntry:
        return self.add(message, Severity.INFO)

    def warning(self, message: str) -> LogEntry:
        return self.add(message, Severity.WARNING)

    def danger(self, message: str) -> LogEntry:
        return self.add(message, Severity.DANGER)

    def clear(self):
        self._entries.clear()

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def count(self, severity: Severity) -> int:
        return sum(1 for e in self._entries if e.severity is severity)

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))
