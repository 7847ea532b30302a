"""Burn event poller.

Each tick scans every configured network independently: read the head,
fetch ``TokensBurned`` logs after the cursor in ranges of at most the
network's ``max_log_range`` blocks, create a ``pending`` mint record plus a
mint job for every burn not seen before, then advance the cursor to the
head. A failure on any range leaves the cursor where it was so the same gap
is scanned again on the next tick.
"""

from typing import Any, Dict, List, Set, Tuple

from ..errors import ConfigurationError
from ..logging import LogContext, get_logger
from .cursor import EventCursorTracker
from .types import (
    BridgeTransaction,
    BurnEvent,
    MintJobPayload,
    Network,
    OperationType,
    TransactionStatus,
)

logger = get_logger(__name__)


def mint_job_id(tx_hash_originator: str) -> str:
    """Queue job id of the mint caused by ``tx_hash_originator``."""
    return f"mint:{tx_hash_originator.lower()}"


def block_ranges(first: int, last: int, max_range: int) -> List[Tuple[int, int]]:
    """Split ``[first, last]`` into inclusive ranges of at most ``max_range`` blocks."""
    if max_range < 1:
        raise ValueError("max_range must be at least 1")
    ranges = []
    start = first
    while start <= last:
        end = min(start + max_range - 1, last)
        ranges.append((start, end))
        start = end + 1
    return ranges


class BurnEventPoller:
    """Turns burn logs into pending mint records and queued mint jobs."""

    def __init__(
        self,
        bindings: Dict[Network, Any],
        targets: Dict[Network, Network],
        cursor: EventCursorTracker,
        store,
        queue,
        job_options=None,
    ):
        missing = [network.value for network in bindings if network not in targets]
        if missing:
            raise ConfigurationError(f"No mint target for network(s): {', '.join(missing)}")
        self.bindings = bindings
        self.targets = targets
        self.cursor = cursor
        self.store = store
        self.queue = queue
        self.job_options = job_options
        self._seen: Set[str] = set()

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    async def initialize(self) -> None:
        """Start every network's cursor at its current head."""
        for network, binding in self.bindings.items():
            try:
                head = await binding.client.get_block_number()
                self.cursor.initialize(network, head)
            except Exception as e:
                # retried lazily by the first successful poll of this network
                logger.error(
                    f"Failed to read head of {network.value}: {e}",
                    context=LogContext(component="poller", network=network.value),
                    exception=e,
                )

    async def poll_once(self) -> Dict[Network, int]:
        """Poll every network once; returns the number of new burns per network."""
        results: Dict[Network, int] = {}
        for network in self.bindings:
            try:
                results[network] = await self._poll_network(network)
            except Exception as e:
                logger.error(
                    f"Error polling {network.value}: {e}",
                    context=LogContext(component="poller", network=network.value),
                    exception=e,
                )
                results[network] = 0
        return results

    async def _poll_network(self, network: Network) -> int:
        context = LogContext(component="poller", network=network.value)
        binding = self.bindings[network]
        client = binding.client
        head = await client.get_block_number()

        if not self.cursor.is_initialized(network):
            self.cursor.initialize(network, head)
            return 0

        current = self.cursor.get(network)
        if head <= current:
            logger.debug(f"No new blocks on {network.value} (head {head})", context=context)
            return 0

        # the whole gap is fetched before any burn is handled or the cursor moves
        events = []
        for start, end in block_ranges(current + 1, head, binding.config.max_log_range):
            events.extend(await client.get_burn_events(start, end))
        logger.debug(
            f"Fetched {len(events)} burn log(s) on {network.value} "
            f"for blocks {current + 1}-{head}",
            context=context,
        )

        detected = 0
        for event in events:
            if event.tx_hash in self._seen:
                continue
            if self._handle_burn(event):
                detected += 1
            self._seen.add(event.tx_hash)

        self.cursor.advance(network, head)
        return detected

    def _handle_burn(self, event: BurnEvent) -> bool:
        """Record and enqueue one burn; False when it was already recorded."""
        target = self.targets[event.network]
        context = LogContext(
            component="poller", network=event.network.value, tx_hash=event.tx_hash
        )

        existing = self.store.find_by_originator_hash(event.tx_hash)
        if existing:
            record = existing[0]
            logger.info(
                f"Burn {event.tx_hash} already has mint record {record.id}",
                context=context,
            )
        else:
            record = self.store.create(
                BridgeTransaction(
                    user=event.user,
                    network=target,
                    operation_type=OperationType.MINT,
                    amount=event.formatted_amount,
                    tx_hash_originator=event.tx_hash,
                    status=TransactionStatus.PENDING,
                )
            )
            logger.info(
                f"Detected burn of {record.amount} tokens by {event.user} on "
                f"{event.network.value}; mint record {record.id} on {target.value}",
                context=context,
            )

        # enqueued even for a known record: a previous enqueue may have failed
        payload = MintJobPayload(
            user=record.user,
            amount=record.amount,
            target_network=record.network,
            tx_hash_originator=event.tx_hash,
        )
        self.queue.enqueue(
            payload.kind.value,
            payload.to_dict(),
            options=self.job_options,
            job_id=mint_job_id(event.tx_hash),
        )
        return not existing

