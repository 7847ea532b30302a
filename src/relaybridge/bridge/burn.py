"""Synchronous burn entry point and balance lookup.

A user authorizes a burn by signing ``keccak256(contract, amount)`` with the
EIP-191 prefix. The operator then calls ``burnFrom`` directly; the resulting
``TokensBurned`` log is what the poller turns into a mint.
"""

from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from ..errors import ValidationError
from ..logging import LogContext, get_logger
from .types import (
    BridgeTransaction,
    Network,
    OperationType,
    TransactionStatus,
    from_base_units,
    to_base_units,
)

logger = get_logger(__name__)


def burn_message_hash(contract_address: str, amount: int) -> bytes:
    """Hash a user signs to authorize burning ``amount`` base units."""
    return bytes(
        Web3.solidity_keccak(
            ["address", "uint256"], [Web3.to_checksum_address(contract_address), amount]
        )
    )


def recover_signer(message_hash: bytes, signature: str) -> str:
    try:
        return Account.recover_message(
            encode_defunct(primitive=message_hash), signature=signature
        )
    except Exception as e:
        raise ValidationError(f"Invalid signature: {e}", field="signature", value=signature)


class BurnService:
    """Verifies signed burn requests and executes them on the source network."""

    def __init__(self, bindings: Dict[Network, Any], store):
        self.bindings = bindings
        self.store = store

    async def burn(
        self,
        user: str,
        amount: str,
        network: Any,
        signature: str,
        contract_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        network = Network.parse(network)
        binding = self.bindings.get(network)
        if binding is None:
            raise ValidationError(
                f"Network {network.value} is not configured",
                field="selectedNetwork",
                value=network.value,
            )
        if not Web3.is_address(user):
            raise ValidationError(f"Invalid user address: {user}", field="user", value=user)
        if contract_address and contract_address.lower() != binding.contract_address.lower():
            raise ValidationError(
                f"Contract {contract_address} is not the bridge contract on {network.value}",
                field="contractAddress",
                value=contract_address,
            )

        units = to_base_units(amount)
        signer = recover_signer(burn_message_hash(binding.contract_address, units), signature)
        if signer.lower() != user.lower():
            raise ValidationError(
                "Signature does not match user", field="signature", value=signature
            )

        context = LogContext(component="burn", network=network.value)
        logger.info(f"Burning {amount} tokens of {user} on {network.value}", context=context)
        tx_hash = await binding.client.burn_from(user, units)
        context.tx_hash = tx_hash

        self.store.create(
            BridgeTransaction(
                user=user,
                network=network,
                operation_type=OperationType.BURN,
                amount=from_base_units(units),
                tx_hash=tx_hash,
                status=TransactionStatus.COMPLETED,
            )
        )
        logger.info(f"Burn of {amount} tokens confirmed", context=context)
        return {"success": True, "txHash": tx_hash}

    async def get_user_balance(self, user: str) -> Dict[str, str]:
        """Formatted token balance of ``user`` on every network."""
        if not Web3.is_address(user):
            raise ValidationError(f"Invalid user address: {user}", field="user", value=user)
        balances = {}
        for network, binding in self.bindings.items():
            balance = await binding.client.balance_of(user)
            balances[f"{network.value}Balance"] = from_base_units(balance)
        return balances
