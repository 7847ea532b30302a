"""Relay task reconciler.

Resolves ``processing`` records by asking the relay for the status of their
task. Only an explicit relay verdict moves a record to a terminal state;
failures talking to the relay leave it untouched for the next cycle.
"""

from dataclasses import dataclass

from ..logging import LogContext, get_logger
from ..relay import RelayTaskState
from .types import TransactionStatus

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation cycle."""

    checked: int = 0
    completed: int = 0
    failed: int = 0
    unchanged: int = 0
    errors: int = 0


class RelayTaskReconciler:
    """Moves ``processing`` records to ``completed`` or ``failed``."""

    def __init__(self, relay, store):
        self.relay = relay
        self.store = store

    async def reconcile_once(self) -> ReconcileResult:
        result = ReconcileResult()
        try:
            records = self.store.find_all_with_status(TransactionStatus.PROCESSING)
        except Exception as e:
            logger.error(
                f"Failed to load processing transactions: {e}",
                context=LogContext(component="reconciler"),
                exception=e,
            )
            result.errors += 1
            return result

        logger.debug(
            f"Checking {len(records)} processing transaction(s)",
            context=LogContext(component="reconciler"),
        )
        for record in records:
            result.checked += 1
            context = LogContext(
                component="reconciler",
                network=record.network.value,
                task_id=record.relay_task_id,
                tx_hash=record.tx_hash_originator,
            )
            if not record.relay_task_id:
                logger.warning(
                    f"Transaction {record.id} is processing without a relay task",
                    context=context,
                )
                result.unchanged += 1
                continue

            try:
                outcome = await self._reconcile(record.relay_task_id, context)
            except Exception as e:
                logger.error(
                    f"Error checking relay task {record.relay_task_id}: {e}",
                    context=context,
                    exception=e,
                )
                result.errors += 1
                continue

            setattr(result, outcome, getattr(result, outcome) + 1)
        return result

    async def _reconcile(self, task_id: str, context: LogContext) -> str:
        status = await self.relay.get_task_status(task_id)
        if status.state == RelayTaskState.EXEC_SUCCESS and status.transaction_hash:
            self.store.update_by_task_id(
                task_id,
                status=TransactionStatus.COMPLETED,
                tx_hash=status.transaction_hash,
            )
            logger.info(
                f"Relay task {task_id} executed in {status.transaction_hash}",
                context=context,
            )
            return "completed"

        if status.state == RelayTaskState.CANCELLED:
            self.store.update_by_task_id(task_id, status=TransactionStatus.FAILED)
            logger.warning(f"Relay task {task_id} was cancelled", context=context)
            return "failed"

        logger.debug(f"Relay task {task_id} is {status.state.value}", context=context)
        return "unchanged"

