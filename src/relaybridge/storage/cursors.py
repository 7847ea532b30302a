"""Persisted per-network event cursors."""

import time
from typing import Dict, Optional

from ..bridge.types import Network
from .database import SQLiteBackend


class CursorStore:
    """Stores the last scanned block for each network."""

    def __init__(self, backend: SQLiteBackend):
        self.backend = backend

    def load(self, network: Network) -> Optional[int]:
        row = self.backend.fetch_one(
            "SELECT block_number FROM event_cursors WHERE network = ?",
            (network.value,),
        )
        return int(row["block_number"]) if row else None

    def load_all(self) -> Dict[Network, int]:
        rows = self.backend.fetch_all("SELECT network, block_number FROM event_cursors")
        return {Network(row["network"]): int(row["block_number"]) for row in rows}

    def save(self, network: Network, block_number: int) -> None:
        # MAX() keeps the persisted cursor monotonic even with racing writers
        self.backend.execute(
            "INSERT INTO event_cursors (network, block_number, updated_at) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT(network) DO UPDATE SET "
            "block_number = MAX(block_number, excluded.block_number), "
            "updated_at = excluded.updated_at",
            (network.value, block_number, time.time()),
        )
