"""Sync engine and the remote services it talks to."""
from painel.sync.engine import (
    ConnectionState,
    Notification,
    SyncEngine,
    SyncError,
    SyncSettings,
    SyncSnapshot,
)
from painel.sync.services import RemoteServices

__all__ = [
    "ConnectionState",
    "Notification",
    "RemoteServices",
    "SyncEngine",
    "SyncError",
    "SyncSettings",
    "SyncSnapshot",
]
