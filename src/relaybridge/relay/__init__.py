"""Relay / sponsorship service client."""

from .client import GelatoRelayClient, RelayTaskState, RelayTaskStatus

__all__ = ["GelatoRelayClient", "RelayTaskState", "RelayTaskStatus"]
