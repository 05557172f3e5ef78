"""Backend registry and factory functions.

A database file's extension selects the storage engine:

    drop.dbm / drop.gdbm  ->  "gdbm"  (hash table)
    drop.mdb / drop.lmdb  ->  "lmdb"  (B-tree)
    anything else         ->  "gdbm"

Adapter modules are imported only when resolved, so an engine whose native
library is unavailable fails with ``BackendResolutionError`` instead of
breaking every other backend.
"""

import importlib
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

from ..logging import get_logger
from .base import KVStore
from .exceptions import BackendResolutionError

logger = get_logger(__name__)

BackendType = Literal["gdbm", "lmdb"]

DEFAULT_BACKEND: BackendType = "gdbm"

# File extension (without the dot) -> backend identifier
EXTENSION_MAP: MappingProxyType[str, str] = MappingProxyType({
    "dbm": "gdbm",
    "gdbm": "gdbm",
    "mdb": "lmdb",
    "lmdb": "lmdb",
})

# Backend identifier -> "module:Class" of its adapter
BACKENDS: MappingProxyType[str, str] = MappingProxyType({
    "gdbm": "drop.storage.adapters.gdbm_store:GdbmStore",
    "lmdb": "drop.storage.adapters.lmdb_store:LmdbStore",
})


def backend_for_path(path: str | Path) -> str:
    """Return the backend identifier for a database file.

    Examples:
        >>> backend_for_path("/home/me/.drop.mdb")
        'lmdb'
        >>> backend_for_path("notes")
        'gdbm'
    """
    suffix = Path(path).suffix.lstrip(".")
    return EXTENSION_MAP.get(suffix, DEFAULT_BACKEND)


def load_backend(name: str) -> type[KVStore]:
    """Import and return the adapter class for a backend identifier.

    Raises:
        BackendResolutionError: Unknown identifier, or the adapter (or its
            native engine) could not be imported.
    """
    if name not in BACKENDS:
        raise BackendResolutionError(
            name,
            f"Unknown backend. Available backends: {list(BACKENDS.keys())}",
        )

    module_name, _, class_name = BACKENDS[name].partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise BackendResolutionError(
            name, f"Could not load database support library: {exc}"
        ) from exc

    backend_class = getattr(module, class_name, None)
    if backend_class is None:
        raise BackendResolutionError(
            name, f"Error loading database support: {module_name} has no {class_name}"
        )
    logger.debug("Loaded backend", backend=name, adapter=BACKENDS[name])
    return backend_class


def available_backends() -> list[str]:
    """Return the backend identifiers whose adapters can be imported."""
    available = []
    for name in BACKENDS:
        try:
            load_backend(name)
        except BackendResolutionError:
            continue
        available.append(name)
    return available


def create_store(
    path: str | Path,
    backend: str | None = None,
    **kwargs: Any,
) -> KVStore:
    """Create an unopened store for a database file.

    Args:
        path: Database file path
        backend: Backend identifier; derived from the extension when None
        **kwargs: Additional arguments passed to the adapter constructor
            - gdbm: mode (default: 0o600), synchronous (default: False)
            - lmdb: map_size (default: 10MB), mode, synchronous (default: True)
    """
    name = backend or backend_for_path(path)
    backend_class = load_backend(name)
    return backend_class(path, **kwargs)


def open_store(
    path: str | Path,
    backend: str | None = None,
    **kwargs: Any,
) -> KVStore:
    """Resolve the backend for a database file and open it.

    Raises:
        BackendResolutionError: No usable backend for the file.
        OpenFailedError: The engine could not open or create the file.

    Example:
        >>> with open_store("/tmp/drop.mdb") as store:
        ...     store.store("github", "hunter2")
        True
    """
    return create_store(path, backend, **kwargs).open()
