"""Storage package for stock controls.

This package provides:
- local.py: SQLite store (local-only deployments and fallback)
- remote.py: Supabase REST store
- hybrid.py: facade choosing between them, with retry and change watching
"""

from .hybrid import ChangeWatcher, ConnectionState, StorageFacade, Subscription
from .local import LocalStore
from .remote import RemoteStore, RemoteStoreError, StorageError

__all__ = [
    "ChangeWatcher",
    "ConnectionState",
    "LocalStore",
    "RemoteStore",
    "RemoteStoreError",
    "StorageError",
    "StorageFacade",
    "Subscription",
]
