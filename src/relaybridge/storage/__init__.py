"""Persistence for relaybridge: SQLite backend, transaction store and cursors."""

from .cursors import CursorStore
from .database import DatabaseConfig, SQLiteBackend
from .transactions import TransactionStore

__all__ = [
    "DatabaseConfig",
    "SQLiteBackend",
    "TransactionStore",
    "CursorStore",
]
