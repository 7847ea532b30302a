"""Core logging interfaces and data structures for relaybridge.

Loggers are thin named handles; every call is routed through the active
:class:`LogManager`, so ``setup_logging`` can be called after modules have
created their module-level loggers.
"""

import json
import os
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _LEVEL_ORDER[self]

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown log level: {value}")


_LEVEL_ORDER = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARNING: 30,
    LogLevel.ERROR: 40,
    LogLevel.CRITICAL: 50,
}


@dataclass
class LogContext:
    """Relay-specific context attached to a log entry."""

    component: Optional[str] = None
    network: Optional[str] = None
    job_id: Optional[str] = None
    task_id: Optional[str] = None
    tx_hash: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "component": self.component,
            "network": self.network,
            "job_id": self.job_id,
            "task_id": self.task_id,
            "tx_hash": self.tx_hash,
        }
        data = {key: value for key, value in data.items() if value is not None}
        if self.metadata:
            data["metadata"] = self.metadata
        return data


@dataclass
class LogEntry:
    """Log entry data structure."""

    timestamp: float
    level: LogLevel
    message: str
    logger_name: str
    context: LogContext
    exception: Optional[BaseException] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    thread_id: int = field(default_factory=threading.get_ident)
    process_id: int = field(default_factory=os.getpid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "logger_name": self.logger_name,
            "context": self.context.to_dict(),
            "exception": repr(self.exception) if self.exception else None,
            "extra": self.extra,
            "thread_id": self.thread_id,
            "process_id": self.process_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class LogConfig:
    """Log configuration."""

    name: str = "relaybridge"
    level: LogLevel = LogLevel.INFO
    format_type: str = "json"  # json, text
    handlers: List[str] = field(default_factory=lambda: ["console"])


class LogFormatter(ABC):
    """Abstract log formatter."""

    @abstractmethod
    def format(self, entry: LogEntry) -> str:
        """Format log entry."""


class LogHandler(ABC):
    """Abstract log handler."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG):
        self.level = level
        self.formatter: Optional[LogFormatter] = None
        self._lock = threading.RLock()

    def set_formatter(self, formatter: LogFormatter) -> None:
        with self._lock:
            self.formatter = formatter

    def handle(self, entry: LogEntry) -> None:
        if entry.level.severity >= self.level.severity:
            self.emit(entry)

    @abstractmethod
    def emit(self, entry: LogEntry) -> None:
        """Emit log entry."""

    def close(self) -> None:
        pass


class LogManager:
    """Routes log entries from named loggers to the configured handlers."""

    def __init__(self, config: Optional[LogConfig] = None):
        self.config = config or LogConfig()
        self.handlers: Dict[str, LogHandler] = {}
        self._lock = threading.RLock()
        self._setup_defaults()

    def _setup_defaults(self) -> None:
        from .formatters import JSONFormatter, TextFormatter
        from .handlers import ConsoleHandler

        formatter = (
            TextFormatter() if self.config.format_type == "text" else JSONFormatter()
        )
        console = ConsoleHandler()
        console.set_formatter(formatter)
        self.add_handler("console", console)

    def add_handler(self, name: str, handler: LogHandler) -> None:
        with self._lock:
            self.handlers[name] = handler
            if name not in self.config.handlers:
                self.config.handlers.append(name)

    def remove_handler(self, name: str) -> None:
        with self._lock:
            handler = self.handlers.pop(name, None)
            if name in self.config.handlers:
                self.config.handlers.remove(name)
        if handler is not None:
            handler.close()

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.severity >= self.config.level.severity

    def log(
        self,
        level: LogLevel,
        message: str,
        logger_name: str,
        context: Optional[LogContext] = None,
        exception: Optional[BaseException] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.is_enabled_for(level):
            return

        entry = LogEntry(
            timestamp=time.time(),
            level=level,
            message=message,
            logger_name=logger_name,
            context=context or LogContext(),
            exception=exception,
            extra=extra or {},
        )

        with self._lock:
            handlers = [
                self.handlers[name]
                for name in self.config.handlers
                if name in self.handlers
            ]

        for handler in handlers:
            handler.handle(entry)

    def shutdown(self) -> None:
        with self._lock:
            for handler in self.handlers.values():
                handler.close()
            self.handlers.clear()


class BridgeLogger:
    """Named logger bound to whichever manager is currently active."""

    def __init__(self, name: str):
        self.name = name

    @property
    def manager(self) -> LogManager:
        return _get_manager()

    def log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        exception: Optional[BaseException] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.manager.log(
            level,
            message,
            logger_name=self.name,
            context=context,
            exception=exception,
            extra=extra,
        )

    def debug(self, message: str, **kwargs) -> None:
        self.log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log(LogLevel.CRITICAL, message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log at error level with the exception currently being handled."""
        if "exception" not in kwargs:
            kwargs["exception"] = sys.exc_info()[1]
        self.log(LogLevel.ERROR, message, **kwargs)


_global_manager: Optional[LogManager] = None
_manager_lock = threading.Lock()
_loggers: Dict[str, BridgeLogger] = {}


def _get_manager() -> LogManager:
    global _global_manager
    with _manager_lock:
        if _global_manager is None:
            _global_manager = LogManager()
        return _global_manager


def get_logger(name: str = "relaybridge") -> BridgeLogger:
    """Get logger instance."""
    with _manager_lock:
        if name not in _loggers:
            _loggers[name] = BridgeLogger(name)
        return _loggers[name]


def setup_logging(config: LogConfig) -> LogManager:
    """Replace the active manager with one built from ``config``."""
    global _global_manager
    manager = LogManager(config)
    with _manager_lock:
        previous, _global_manager = _global_manager, manager
    if previous is not None:
        previous.shutdown()
    return manager


def shutdown_logging() -> None:
    global _global_manager
    with _manager_lock:
        manager, _global_manager = _global_manager, None
    if manager is not None:
        manager.shutdown()
