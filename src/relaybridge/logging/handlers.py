"""Log handlers for relaybridge."""

import sys
from collections import deque
from typing import Any, List, Optional

from .core import LogEntry, LogHandler, LogLevel


class ConsoleHandler(LogHandler):
    """Write formatted entries to a stream (stdout by default)."""

    def __init__(self, stream: Any = None, level: LogLevel = LogLevel.DEBUG):
        super().__init__(level)
        self.stream = stream

    def emit(self, entry: LogEntry) -> None:
        stream = self.stream or sys.stdout
        with self._lock:
            if self.formatter:
                formatted = self.formatter.format(entry)
            else:
                formatted = (
                    f"{entry.timestamp} [{entry.level.value.upper()}] "
                    f"{entry.logger_name}: {entry.message}"
                )
            stream.write(formatted + "\n")
            stream.flush()


class MemoryHandler(LogHandler):
    """Keep the most recent entries in memory."""

    def __init__(self, max_size: int = 1000, level: LogLevel = LogLevel.DEBUG):
        super().__init__(level)
        self.buffer: deque = deque(maxlen=max_size)

    def emit(self, entry: LogEntry) -> None:
        with self._lock:
            self.buffer.append(entry)

    def get_entries(self, level: Optional[LogLevel] = None) -> List[LogEntry]:
        with self._lock:
            entries = list(self.buffer)
        if level is None:
            return entries
        return [entry for entry in entries if entry.level == level]

    def messages(self) -> List[str]:
        return [entry.message for entry in self.get_entries()]

    def clear(self) -> None:
        with self._lock:
            self.buffer.clear()
