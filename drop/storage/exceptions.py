"""Custom exceptions for storage backends.

Only conditions that stop a command outright are exceptions. A missing key,
an insert conflict or a failed write are reported through the return value
of the store operation plus ``KVStore.last_error()``.
"""


class StorageError(Exception):
    """Base exception for all storage-related errors."""
    pass


class OpenFailedError(StorageError):
    """The database file could not be opened or created."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class BackendResolutionError(StorageError):
    """No usable backend implementation for the selected engine."""

    def __init__(self, backend: str, detail: str):
        self.backend = backend
        self.detail = detail
        super().__init__(f"{backend}: {detail}")


class StoreClosedError(StorageError):
    """A store (or a cursor borrowed from it) was used while not open."""
    pass


class CursorStateError(StorageError):
    """A cursor primitive was called out of order."""
    pass


class StorageOperationError(StorageError):
    """A storage operation failed in a way the contract cannot express."""
    pass
