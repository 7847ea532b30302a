"""Burn-to-mint bridge core.

Only the domain types are re-exported here; the components live in their
own modules (``relaybridge.bridge.poller`` and so on).
"""

from .types import (
    TOKEN_DECIMALS,
    BridgeTransaction,
    BurnEvent,
    JobKind,
    MintJobPayload,
    Network,
    OperationType,
    TransactionStatus,
    decode_job_payload,
    from_base_units,
    to_base_units,
)

__all__ = [
    "TOKEN_DECIMALS",
    "BridgeTransaction",
    "BurnEvent",
    "JobKind",
    "MintJobPayload",
    "Network",
    "OperationType",
    "TransactionStatus",
    "decode_job_payload",
    "from_base_units",
    "to_base_units",
]
