"""HTTP API."""

from .app import BurnRequest, create_app

__all__ = ["BurnRequest", "create_app"]
