"""Persisted bridge transaction store.

This is the single source of truth for reconciliation state and the only
place where ``status`` changes. Every update is checked against the
forward-only state machine inside the same SQLite transaction that writes
it.
"""

import time
from typing import Any, Dict, Iterable, List, Optional

from ..bridge.types import (
    BridgeTransaction,
    Network,
    OperationType,
    TransactionStatus,
)
from ..errors import StateTransitionError, StorageError
from ..logging import LogContext, get_logger
from .database import SQLiteBackend

logger = get_logger(__name__)

_COLUMNS = (
    "id, user, network, type, amount, tx_hash, tx_hash_originator, "
    "relay_task_id, status, created_at, updated_at"
)
_NEWEST_FIRST = "ORDER BY created_at DESC, rowid DESC"

_UNSET = object()


def _row_to_transaction(row: Dict[str, Any]) -> BridgeTransaction:
    return BridgeTransaction(
        id=row["id"],
        user=row["user"],
        network=Network(row["network"]),
        operation_type=OperationType(row["type"]),
        amount=row["amount"],
        tx_hash=row["tx_hash"],
        tx_hash_originator=row["tx_hash_originator"],
        relay_task_id=row["relay_task_id"],
        status=TransactionStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class TransactionStore:
    """Repository of :class:`BridgeTransaction` records."""

    def __init__(self, backend: SQLiteBackend):
        self.backend = backend

    def create(self, record: BridgeTransaction) -> BridgeTransaction:
        try:
            self.backend.execute(
                f"INSERT INTO bridge_transactions ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user,
                    record.network.value,
                    record.operation_type.value,
                    record.amount,
                    record.tx_hash,
                    record.tx_hash_originator,
                    record.relay_task_id,
                    record.status.value,
                    record.created_at,
                    record.updated_at,
                ),
            )
        except StorageError as e:
            raise StorageError(f"Failed to create transaction {record.id}: {e.message}", cause=e)

        logger.debug(
            f"Created {record.operation_type.value} record {record.id}",
            context=LogContext(
                component="store",
                network=record.network.value,
                tx_hash=record.tx_hash or record.tx_hash_originator,
            ),
        )
        return record

    def get(self, record_id: str) -> Optional[BridgeTransaction]:
        row = self.backend.fetch_one(
            f"SELECT {_COLUMNS} FROM bridge_transactions WHERE id = ?", (record_id,)
        )
        return _row_to_transaction(row) if row else None

    def find_by_user(self, user: str) -> List[BridgeTransaction]:
        return self._select(f"WHERE user = ? {_NEWEST_FIRST}", (user,))

    def find_by_tx_hash_either_side(self, tx_hash: str) -> List[BridgeTransaction]:
        return self._select(
            f"WHERE tx_hash = ? OR tx_hash_originator = ? {_NEWEST_FIRST}",
            (tx_hash, tx_hash),
        )

    def find_by_originator_hash(self, tx_hash: str) -> List[BridgeTransaction]:
        return self._select(
            f"WHERE tx_hash_originator = ? {_NEWEST_FIRST}", (tx_hash,)
        )

    def find_all_with_status(self, status: TransactionStatus) -> List[BridgeTransaction]:
        return self._select("WHERE status = ? ORDER BY created_at, rowid", (status.value,))

    def find_stale(
        self, statuses: Iterable[TransactionStatus], older_than: float
    ) -> List[BridgeTransaction]:
        """Records in ``statuses`` not touched since ``older_than``."""
        values = [status.value for status in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        return self._select(
            f"WHERE status IN ({placeholders}) "
            "AND COALESCE(updated_at, created_at) < ? ORDER BY created_at, rowid",
            (*values, older_than),
        )

    def update_by_task_id(
        self,
        task_id: str,
        status: Optional[TransactionStatus] = None,
        tx_hash: Any = _UNSET,
    ) -> int:
        return self._update_where(
            "relay_task_id", task_id, status=status, tx_hash=tx_hash
        )

    def update_by_originator_hash(
        self,
        tx_hash_originator: str,
        status: Optional[TransactionStatus] = None,
        relay_task_id: Any = _UNSET,
        tx_hash: Any = _UNSET,
    ) -> int:
        return self._update_where(
            "tx_hash_originator",
            tx_hash_originator,
            status=status,
            relay_task_id=relay_task_id,
            tx_hash=tx_hash,
        )

    def _select(self, clause: str, params: tuple) -> List[BridgeTransaction]:
        rows = self.backend.fetch_all(
            f"SELECT {_COLUMNS} FROM bridge_transactions {clause}", params
        )
        return [_row_to_transaction(row) for row in rows]

    def _update_where(
        self,
        column: str,
        value: str,
        status: Optional[TransactionStatus] = None,
        relay_task_id: Any = _UNSET,
        tx_hash: Any = _UNSET,
    ) -> int:
        now = time.time()
        with self.backend.transaction() as connection:
            rows = connection.execute(
                f"SELECT {_COLUMNS} FROM bridge_transactions WHERE {column} = ?",
                (value,),
            ).fetchall()

            for row in rows:
                current = _row_to_transaction(dict(row))
                self._check_patch(current, status, relay_task_id)

                assignments = ["updated_at = ?"]
                params: List[Any] = [now]
                if status is not None:
                    assignments.append("status = ?")
                    params.append(status.value)
                if relay_task_id is not _UNSET:
                    assignments.append("relay_task_id = ?")
                    params.append(relay_task_id)
                if tx_hash is not _UNSET:
                    assignments.append("tx_hash = ?")
                    params.append(tx_hash)
                params.append(current.id)

                connection.execute(
                    f"UPDATE bridge_transactions SET {', '.join(assignments)} WHERE id = ?",
                    params,
                )

        if rows:
            logger.debug(
                f"Updated {len(rows)} record(s) where {column} = {value}",
                context=LogContext(component="store"),
                extra={"status": status.value if status else None},
            )
        return len(rows)

    @staticmethod
    def _check_patch(
        current: BridgeTransaction,
        status: Optional[TransactionStatus],
        relay_task_id: Any,
    ) -> None:
        if status is not None and not current.status.can_transition_to(status):
            raise StateTransitionError(
                f"Transaction {current.id} cannot move from "
                f"{current.status.value} to {status.value}",
                record_id=current.id,
                current=current.status.value,
                requested=status.value,
            )

        if (
            relay_task_id is not _UNSET
            and current.relay_task_id is not None
            and relay_task_id != current.relay_task_id
        ):
            raise StateTransitionError(
                f"Transaction {current.id} already has relay task "
                f"{current.relay_task_id}",
                record_id=current.id,
                current=current.relay_task_id,
                requested=relay_task_id,
            )
