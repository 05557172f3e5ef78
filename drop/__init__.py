"""
drop - a personal note and secret store

Single-line values are kept under single-word keys in an embedded
key-value database. The storage engine is picked from the database file's
extension: GNU dbm (hash table) for ``.dbm``, LMDB (B-tree) for ``.mdb``.

Main exports:
    - open_store: open a database file with the matching backend
    - KVStore / Cursor: the backend-agnostic storage contract
    - UpsertWorkflow: insert with confirmation before overwriting
    - CommandDispatcher / run_command: the operations behind the CLI

Example:
    >>> from drop import open_store
    >>> with open_store("/tmp/drop.mdb") as store:
    ...     store.try_insert("github", "hunter2")
    ...     store.fetch("github")
    True
    'hunter2'
"""

from .storage import (
    Cursor,
    Entry,
    ErrorCode,
    KVStore,
    normalize_key,
    open_store,
    StorageError,
    OpenFailedError,
    BackendResolutionError,
)
from .workflow import UpsertResult, UpsertState, UpsertWorkflow
from .dispatcher import Command, CommandDispatcher, Operation, TransferType, run_command
from .config import DropConfig, ConfigurationError

__version__ = "1.0.0"

__all__ = [
    # Storage
    'Cursor',
    'Entry',
    'ErrorCode',
    'KVStore',
    'normalize_key',
    'open_store',
    'StorageError',
    'OpenFailedError',
    'BackendResolutionError',
    # Workflow
    'UpsertResult',
    'UpsertState',
    'UpsertWorkflow',
    # Dispatch
    'Command',
    'CommandDispatcher',
    'Operation',
    'TransferType',
    'run_command',
    # Configuration
    'DropConfig',
    'ConfigurationError',
]
