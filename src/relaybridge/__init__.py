"""
relaybridge: burn-to-mint bridge relay.

Watches ``TokensBurned`` events on one EVM network, mints the same amount
on the other through a sponsored relay call, and tracks every cross-chain
operation until it is confirmed or has permanently failed.
"""

__version__ = "0.1.0"

from .bridge.types import (
    BridgeTransaction,
    Network,
    OperationType,
    TransactionStatus,
)
from .config import BridgeConfig
from .errors import RelayBridgeError

__all__ = [
    "BridgeTransaction",
    "Network",
    "OperationType",
    "TransactionStatus",
    "BridgeConfig",
    "RelayBridgeError",
    "__version__",
]
