"""ABI of the bridge token contract deployed on every supported network."""

from web3 import Web3

BURN_EVENT_SIGNATURE = "TokensBurned(address,uint256)"
BURN_EVENT_TOPIC = Web3.to_hex(Web3.keccak(text=BURN_EVENT_SIGNATURE))


def _event(name, inputs):
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": arg, "type": kind, "indexed": indexed}
            for arg, kind, indexed in inputs
        ],
    }


def _function(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": arg, "type": kind} for arg, kind in inputs],
        "outputs": [{"name": arg, "type": kind} for arg, kind in outputs],
    }


BRIDGE_TOKEN_ABI = [
    _event("TokensBurned", [("user", "address", True), ("amount", "uint256", False)]),
    _event("TokensMinted", [("user", "address", True), ("amount", "uint256", False)]),
    _event(
        "Transfer",
        [("from", "address", True), ("to", "address", True), ("value", "uint256", False)],
    ),
    _function("burn", [("amount", "uint256")]),
    _function("burnFrom", [("user", "address"), ("amount", "uint256")]),
    _function("mint", [("to", "address"), ("amount", "uint256")]),
    _function("transfer", [("to", "address"), ("amount", "uint256")], [("", "bool")]),
    _function("balanceOf", [("owner", "address")], [("", "uint256")], "view"),
    _function("bridgeOperator", [], [("", "address")], "view"),
]
