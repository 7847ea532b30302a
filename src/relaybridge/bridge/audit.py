"""Report of transactions stuck in a non-terminal state."""

import time
from typing import Callable, List

from ..logging import LogContext, get_logger
from .types import BridgeTransaction, TransactionStatus

logger = get_logger(__name__)

AUDITED_STATUSES = (TransactionStatus.PENDING, TransactionStatus.PROCESSING)


class StalenessAuditor:
    """Logs records that stayed ``pending`` or ``processing`` too long.

    Purely a report for manual triage; statuses are never changed here.
    """

    def __init__(self, store, stale_after: float = 3600.0, clock: Callable[[], float] = time.time):
        self.store = store
        self.stale_after = stale_after
        self._clock = clock

    async def audit_once(self) -> List[BridgeTransaction]:
        cutoff = self._clock() - self.stale_after
        stale = self.store.find_stale(AUDITED_STATUSES, cutoff)
        for record in stale:
            age = self._clock() - (record.updated_at or record.created_at)
            logger.warning(
                f"Transaction {record.id} has been {record.status.value} for {age:.0f}s",
                context=LogContext(
                    component="audit",
                    network=record.network.value,
                    task_id=record.relay_task_id,
                    tx_hash=record.tx_hash_originator or record.tx_hash,
                ),
                extra={"record": record.to_dict()},
            )
        if not stale:
            logger.debug("No stale transactions", context=LogContext(component="audit"))
        return stale
