"""EVM chain access."""

from .contracts import BRIDGE_TOKEN_ABI, BURN_EVENT_SIGNATURE, BURN_EVENT_TOPIC
from .evm import ChainBinding, EvmChainClient, build_bindings

__all__ = [
    "BRIDGE_TOKEN_ABI",
    "BURN_EVENT_SIGNATURE",
    "BURN_EVENT_TOPIC",
    "ChainBinding",
    "EvmChainClient",
    "build_bindings",
]
