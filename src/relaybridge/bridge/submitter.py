"""Mint submission, run by the queue worker for every mint job."""

from typing import Any, Dict, Optional

from ..errors import ConfigurationError, JobError
from ..logging import LogContext, get_logger
from .types import MintJobPayload, Network, TransactionStatus, to_base_units

logger = get_logger(__name__)


class MintSubmitter:
    """Encodes, signs and relays the mint for one job.

    Exceptions propagate to the worker so the queue applies its retry
    policy. A job redelivered after its record already left ``pending`` is
    treated as done without submitting to the relay again.
    """

    def __init__(self, bindings: Dict[Network, Any], relay, store, gas_limit: Optional[int] = None):
        self.bindings = bindings
        self.relay = relay
        self.store = store
        self.gas_limit = gas_limit

    async def handle(self, payload: MintJobPayload) -> Optional[str]:
        """Submit the mint; returns the relay task id."""
        context = LogContext(
            component="submitter",
            network=payload.target_network.value,
            tx_hash=payload.tx_hash_originator,
        )

        binding = self.bindings.get(payload.target_network)
        if binding is None:
            raise ConfigurationError(
                f"No chain binding for {payload.target_network.value}",
                setting=f"{payload.target_network.name}_RPC",
            )

        records = self.store.find_by_originator_hash(payload.tx_hash_originator)
        if not records:
            raise JobError(f"No mint record for burn {payload.tx_hash_originator}")
        submitted = [r for r in records if r.status != TransactionStatus.PENDING]
        if submitted:
            record = submitted[0]
            logger.warning(
                f"Mint for burn {payload.tx_hash_originator} is already "
                f"{record.status.value}, skipping relay submission",
                context=context,
            )
            return record.relay_task_id

        client = binding.client
        data = client.encode_mint(payload.user, to_base_units(payload.amount))
        await client.sign_call(binding.contract_address, data, self.gas_limit)

        task_id = await self.relay.sponsored_call(
            binding.chain_id, binding.contract_address, data
        )
        context.task_id = task_id

        self.store.update_by_originator_hash(
            payload.tx_hash_originator,
            status=TransactionStatus.PROCESSING,
            relay_task_id=task_id,
        )
        logger.info(
            f"Mint of {payload.amount} tokens for {payload.user} submitted to relay",
            context=context,
        )
        return task_id
