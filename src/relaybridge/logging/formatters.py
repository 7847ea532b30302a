"""Log formatters for relaybridge."""

import json
import time
import traceback
from typing import Optional

from .core import LogEntry, LogFormatter


def _iso_timestamp(timestamp: float) -> str:
    return (
        time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(timestamp))
        + f".{int((timestamp % 1) * 1000000):06d}Z"
    )


class JSONFormatter(LogFormatter):
    """One JSON object per line."""

    def __init__(self, include_process: bool = False, indent: Optional[int] = None):
        self.include_process = include_process
        self.indent = indent

    def format(self, entry: LogEntry) -> str:
        data = {
            "timestamp": _iso_timestamp(entry.timestamp),
            "level": entry.level.value,
            "logger": entry.logger_name,
            "message": entry.message,
        }

        context = entry.context.to_dict()
        if context:
            data["context"] = context

        if entry.extra:
            data["extra"] = entry.extra

        if entry.exception is not None:
            data["exception"] = {
                "type": type(entry.exception).__name__,
                "message": str(entry.exception),
                "traceback": "".join(
                    traceback.format_exception(
                        type(entry.exception),
                        entry.exception,
                        entry.exception.__traceback__,
                    )
                ),
            }

        if self.include_process:
            data["thread_id"] = entry.thread_id
            data["process_id"] = entry.process_id

        return json.dumps(data, indent=self.indent, default=str)


class TextFormatter(LogFormatter):
    """Human readable single-line formatter."""

    def __init__(self, timestamp_format: str = "%Y-%m-%d %H:%M:%S"):
        self.timestamp_format = timestamp_format

    def format(self, entry: LogEntry) -> str:
        line = (
            f"{time.strftime(self.timestamp_format, time.localtime(entry.timestamp))} "
            f"[{entry.level.value.upper()}] {entry.logger_name}: {entry.message}"
        )

        context = entry.context.to_dict()
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line = f"{line} ({pairs})"

        if entry.extra:
            line = f"{line} {json.dumps(entry.extra, default=str)}"

        if entry.exception is not None:
            line = f"{line} | {type(entry.exception).__name__}: {entry.exception}"

        return line
