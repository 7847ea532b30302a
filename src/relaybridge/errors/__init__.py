"""relaybridge error handling.

Exception hierarchy plus the retry/backoff policies applied by the job
queue.
"""

from .exceptions import (
    ChainRPCError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    JobError,
    NetworkError,
    RelayBridgeError,
    RelayError,
    StateTransitionError,
    StorageError,
    ValidationError,
)
from .recovery import BackoffStrategy, RetryPolicy

__all__ = [
    # Exceptions
    "RelayBridgeError",
    "ValidationError",
    "ConfigurationError",
    "NetworkError",
    "ChainRPCError",
    "RelayError",
    "StorageError",
    "StateTransitionError",
    "JobError",
    "ErrorCategory",
    "ErrorSeverity",
    # Recovery
    "BackoffStrategy",
    "RetryPolicy",
]
