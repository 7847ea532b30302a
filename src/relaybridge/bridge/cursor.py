"""Per-network event cursor."""

import threading
from typing import Dict, Optional

from ..logging import LogContext, get_logger
from .types import Network

logger = get_logger(__name__)


class EventCursorTracker:
    """Last block scanned for burn events, per network.

    Cursors only move forward. When a cursor store is supplied every advance
    is written through and ``initialize`` resumes from the persisted value,
    otherwise scanning starts at the chain head seen at startup.
    """

    def __init__(self, cursor_store=None):
        self.cursor_store = cursor_store
        self._cursors: Dict[Network, int] = {}
        self._lock = threading.RLock()

    def initialize(self, network: Network, head: int) -> int:
        """Set the starting cursor for ``network`` and return it."""
        with self._lock:
            start = head
            if self.cursor_store is not None:
                persisted = self.cursor_store.load(network)
                if persisted is not None and persisted <= head:
                    start = persisted
            self._cursors[network] = start

        logger.info(
            f"Cursor for {network.value} starts at block {start} (head {head})",
            context=LogContext(component="cursor", network=network.value),
        )
        return start

    def is_initialized(self, network: Network) -> bool:
        with self._lock:
            return network in self._cursors

    def get(self, network: Network) -> Optional[int]:
        with self._lock:
            return self._cursors.get(network)

    def advance(self, network: Network, new_block: int) -> bool:
        """Move the cursor to ``new_block``; ignored unless it moves forward."""
        with self._lock:
            current = self._cursors.get(network)
            if current is not None and new_block <= current:
                return False
            self._cursors[network] = new_block

        if self.cursor_store is not None:
            self.cursor_store.save(network, new_block)
        return True

    def snapshot(self) -> Dict[Network, int]:
        with self._lock:
            return dict(self._cursors)
