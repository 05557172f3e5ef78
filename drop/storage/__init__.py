"""Storage layer for drop.

This module provides a backend-agnostic key-value store abstraction with:
- ``KVStore`` / ``Cursor``: the uniform contract every engine satisfies
- Adapters for a hash-table engine (GNU dbm) and a B-tree engine (LMDB)
- A registry resolving a database file's extension to its engine

Usage:
    from drop.storage import open_store

    with open_store("/home/me/.drop.mdb") as store:
        if not store.try_insert("github", "hunter2"):
            print(store.describe_error(store.last_error()))

        with store.create_cursor() as cursor:
            for key in cursor:
                print(key, cursor.value())

Extending:
    Subclass ``KVStore`` and ``Cursor``, implement the underscore hooks, and
    add the adapter to ``drop.storage.registry.BACKENDS``.
"""

from .base import (
    Cursor,
    CursorState,
    Entry,
    ErrorCode,
    KVStore,
    normalize_key,
)

from .exceptions import (
    StorageError,
    OpenFailedError,
    BackendResolutionError,
    StoreClosedError,
    CursorStateError,
    StorageOperationError,
)

from .registry import (
    BackendType,
    DEFAULT_BACKEND,
    EXTENSION_MAP,
    BACKENDS,
    available_backends,
    backend_for_path,
    create_store,
    load_backend,
    open_store,
)

__all__ = [
    # Contract
    "Cursor",
    "CursorState",
    "Entry",
    "ErrorCode",
    "KVStore",
    "normalize_key",
    # Exceptions
    "StorageError",
    "OpenFailedError",
    "BackendResolutionError",
    "StoreClosedError",
    "CursorStateError",
    "StorageOperationError",
    # Registry
    "BackendType",
    "DEFAULT_BACKEND",
    "EXTENSION_MAP",
    "BACKENDS",
    "available_backends",
    "backend_for_path",
    "create_store",
    "load_backend",
    "open_store",
]
