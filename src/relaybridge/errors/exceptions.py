"""Exception hierarchy for relaybridge.

Every error raised by the relay carries a category, a severity and a
``retryable`` flag so that loops and the job queue can decide whether a
failure is transient (retry on the next tick) or permanent.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    CHAIN = "chain"
    RELAY = "relay"
    STORAGE = "storage"
    JOB = "job"
    SYSTEM = "system"


class RelayBridgeError(Exception):
    """Base exception for all relaybridge errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.cause is not None:
            parts.append(f"Cause: {self.cause}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ValidationError(RelayBridgeError):
    """Invalid input supplied by a caller."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
            }
        )
        return data


class ConfigurationError(RelayBridgeError):
    """Missing or inconsistent configuration."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.setting = setting


class NetworkError(RelayBridgeError):
    """Transport level failure talking to a remote endpoint."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.NETWORK,
        **kwargs,
    ):
        kwargs.setdefault("retryable", True)
        super().__init__(message, category=category, **kwargs)
        self.endpoint = endpoint
        self.status_code = status_code


class ChainRPCError(NetworkError):
    """Failure calling a chain RPC provider."""

    def __init__(self, message: str, network: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.CHAIN, **kwargs)
        self.network = network


class RelayError(NetworkError):
    """Failure calling the relay / sponsorship service."""

    def __init__(self, message: str, task_id: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.RELAY, **kwargs)
        self.task_id = task_id


class StorageError(RelayBridgeError):
    """Failure reading or writing persisted state."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.STORAGE)
        super().__init__(message, **kwargs)


class StateTransitionError(StorageError):
    """An update would move a transaction backwards or overwrite a task id."""

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        current: Optional[str] = None,
        requested: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="INVALID_TRANSITION", **kwargs)
        self.record_id = record_id
        self.current = current
        self.requested = requested


class JobError(RelayBridgeError):
    """Malformed job or unknown job kind."""

    def __init__(self, message: str, job_id: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.JOB, **kwargs)
        self.job_id = job_id
