"""Base abstractions for key-value storage backends.

This module defines:
1. ``normalize_key`` and the ``Entry`` / ``ErrorCode`` value types
2. ``KVStore``, the uniform contract every storage engine adapter satisfies
3. ``Cursor``, the backend-agnostic forward iterator over a store's keys

Adapters implement the underscore-prefixed hooks (``_open``, ``_fetch``,
``_first`` ...) in terms of their native API. The public methods here own
the parts that must behave identically everywhere: lifecycle checks, the
UTF-8 boundary, last-error bookkeeping and the cursor state machine.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Iterator, Self, TypeVar

from ..logging import get_logger
from .exceptions import (
    CursorStateError,
    OpenFailedError,
    StorageOperationError,
    StoreClosedError,
)

logger = get_logger(__name__)

T = TypeVar("T")

ENCODING = "utf-8"
_WHITESPACE = re.compile(r"\s")


def normalize_key(key: str) -> str:
    """Truncate a key at its first whitespace character.

    Keys are single tokens: ``"foo bar"`` is stored and looked up as
    ``"foo"``. A key that starts with whitespace normalizes to ``""``.
    """
    match = _WHITESPACE.search(key)
    if match is None:
        return key
    return key[:match.start()]


def _encode(text: str) -> bytes:
    return text.encode(ENCODING)


def _decode(raw: bytes) -> str:
    return raw.decode(ENCODING, errors="replace")


# =============================================================================
# Value types
# =============================================================================

class ErrorCode(IntEnum):
    """Backend-independent classification of the last store failure."""
    SUCCESS = 0
    NOT_FOUND = 1
    KEY_EXISTS = 2
    READ_ONLY = 3
    STORAGE_FULL = 4
    CORRUPTED = 5
    IO_ERROR = 6
    INVALID = 7
    CLOSED = 8
    UNKNOWN = 9


@dataclass(frozen=True)
class Entry:
    """A key and its value, copied out of a store."""
    key: str
    value: str


class CursorState(Enum):
    NEW = "new"
    POSITIONED = "positioned"
    EXHAUSTED = "exhausted"
    DESTROYED = "destroyed"


# =============================================================================
# Cursor
# =============================================================================

class Cursor(ABC):
    """Single-pass, forward-only iteration position over a store's keys.

    A cursor borrows the store that created it and is destroyed at the
    latest when that store closes. Ordering is whatever the engine provides.
    Mutating the store while a cursor is active is not supported; what the
    cursor then sees is engine-defined.

    Usage::

        with store.create_cursor() as cursor:
            if cursor.first():
                print(cursor.key())
                while cursor.next():
                    print(cursor.key())
    """

    def __init__(self, store: KVStore) -> None:
        self._store = store
        self._state = CursorState.NEW

    @property
    def state(self) -> CursorState:
        return self._state

    # -- Public primitives ---------------------------------------------------

    def first(self) -> bool:
        """Position on the first entry. False means the store is empty.

        May only be called once: cursors are not restartable.
        """
        self._check_usable()
        if self._state is not CursorState.NEW:
            raise CursorStateError("Cursor is forward-only and cannot be restarted")
        found = self._store._require("cursor_first", self._first)
        self._state = CursorState.POSITIONED if found else CursorState.EXHAUSTED
        return found

    def next(self) -> bool:
        """Advance to the next entry. False means iteration is complete."""
        self._check_usable()
        if self._state is CursorState.NEW:
            raise CursorStateError("Cursor must be positioned with first() before next()")
        if self._state is CursorState.EXHAUSTED:
            return False
        found = self._store._require("cursor_next", self._next)
        if not found:
            self._state = CursorState.EXHAUSTED
        return found

    def key(self) -> str:
        """Return the key at the current position."""
        self._check_positioned()
        return _decode(self._store._require("cursor_key", self._key))

    def value(self) -> str | None:
        """Return the value at the current position.

        None when the entry disappeared after the cursor reached its key.
        """
        self._check_positioned()
        raw = self._store._require("cursor_value", self._value)
        if raw is None:
            return None
        return _decode(raw)

    def destroy(self) -> None:
        """Release the cursor's native resources. Safe to call twice."""
        if self._state is CursorState.DESTROYED:
            return
        try:
            self._release()
        except self._store.native_errors as exc:
            self._store._record(self._store._classify(exc), exc)
            logger.warning(
                "Failed to release cursor",
                backend=self._store.backend_name,
                error=str(exc),
            )
        finally:
            self._state = CursorState.DESTROYED
            self._store._forget_cursor(self)

    # -- Python protocols ----------------------------------------------------

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.destroy()

    def __iter__(self) -> Iterator[str]:
        """Yield every key, driving first()/next() on this cursor."""
        if not self.first():
            return
        yield self.key()
        while self.next():
            yield self.key()

    # -- State checks --------------------------------------------------------

    def _check_usable(self) -> None:
        if self._store.closed:
            raise StoreClosedError("Cursor used after its store was closed")
        if self._state is CursorState.DESTROYED:
            raise CursorStateError("Cursor has been destroyed")

    def _check_positioned(self) -> None:
        self._check_usable()
        if self._state is not CursorState.POSITIONED:
            raise CursorStateError("Cursor is not positioned on an entry")

    # -- Native hooks --------------------------------------------------------

    @abstractmethod
    def _first(self) -> bool:
        ...

    @abstractmethod
    def _next(self) -> bool:
        ...

    @abstractmethod
    def _key(self) -> bytes:
        ...

    @abstractmethod
    def _value(self) -> bytes | None:
        ...

    @abstractmethod
    def _release(self) -> None:
        ...


# =============================================================================
# KVStore
# =============================================================================

class KVStore(ABC):
    """Uniform contract over one key-value database file.

    Lifecycle: construct with a path, ``open()``, use, ``close()``. The
    store is also a context manager. Any operation on a store that is not
    open raises ``StoreClosedError``.

    Failure reporting:
    - ``fetch`` returns None when the key is absent.
    - ``try_insert`` returns False when the key already exists.
    - ``store`` / ``delete`` return False on failure (``delete`` also when
      the key is absent).
    In every case ``last_error()`` tells why, and ``describe_error()`` turns
    that code into the engine's own wording. Native engine exceptions are
    recorded the same way rather than propagated.

    Subclass this to plug in another engine::

        class MyStore(KVStore):
            backend_name = "mine"
            def _open(self): ...
            def _fetch(self, key): ...
            # ... implement the other hooks
    """

    backend_name: str = "base"
    native_errors: tuple[type[Exception], ...] = ()
    ERROR_MESSAGES: dict[ErrorCode, str] = {}

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._is_open = False
        self._cursors: list[Cursor] = []
        self._last_error = ErrorCode.SUCCESS
        self._last_error_detail: str | None = None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> Self:
        """Open the database file for read-write, creating it if absent.

        Raises:
            OpenFailedError: The engine could not open or create the file.
            StorageOperationError: The store is already open.
        """
        if self._is_open:
            raise StorageOperationError(f"{self.path} is already open")
        try:
            self._open()
        except (OSError, *self.native_errors) as exc:
            code = self._classify(exc)
            self._record(code, exc)
            raise OpenFailedError(
                str(self.path), str(exc) or self.describe_error(code)
            ) from exc
        self._is_open = True
        self._last_error = ErrorCode.SUCCESS
        logger.debug("Opened database", path=str(self.path), backend=self.backend_name)
        return self

    def close(self) -> bool:
        """Flush and release the database. Returns False if the engine failed.

        Cursors still alive on this store are destroyed first. Closing a
        store that is not open is a no-op.
        """
        if not self._is_open:
            return True
        for cursor in list(self._cursors):
            cursor.destroy()
        self._is_open = False
        try:
            self._close()
        except self.native_errors as exc:
            self._record(self._classify(exc), exc)
            logger.warning(
                "Failed to close database",
                path=str(self.path),
                backend=self.backend_name,
                error=str(exc),
            )
            return False
        logger.debug("Closed database", path=str(self.path), backend=self.backend_name)
        return True

    @property
    def closed(self) -> bool:
        return not self._is_open

    def __enter__(self) -> Self:
        if not self._is_open:
            self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # -- Point operations ----------------------------------------------------

    def fetch(self, key: str) -> str | None:
        """Return a copy of the value stored at key, or None if absent."""
        self._check_open()
        raw = self._attempt("fetch", self._fetch, _encode(key), failed=None)
        if raw is None:
            if self._last_error is ErrorCode.SUCCESS:
                self._last_error = ErrorCode.NOT_FOUND
            return None
        return _decode(raw)

    def try_insert(self, key: str, value: str) -> bool:
        """Insert only if key is absent. False signals a conflict or failure."""
        self._check_open()
        inserted = self._attempt(
            "try_insert", self._try_insert, _encode(key), _encode(value), failed=False
        )
        if not inserted and self._last_error is ErrorCode.SUCCESS:
            self._last_error = ErrorCode.KEY_EXISTS
        if inserted:
            logger.debug("Inserted entry", key=key, backend=self.backend_name)
        return inserted

    def store(self, key: str, value: str) -> bool:
        """Insert or replace the value at key."""
        self._check_open()
        stored = self._attempt(
            "store", self._store_value, _encode(key), _encode(value), failed=False
        )
        if stored:
            logger.debug("Stored entry", key=key, backend=self.backend_name)
        return stored

    def delete(self, key: str) -> bool:
        """Remove the entry at key. False if it did not exist or removal failed."""
        self._check_open()
        deleted = self._attempt("delete", self._delete, _encode(key), failed=False)
        if not deleted and self._last_error is ErrorCode.SUCCESS:
            self._last_error = ErrorCode.NOT_FOUND
        if deleted:
            logger.debug("Deleted entry", key=key, backend=self.backend_name)
        return deleted

    # -- Iteration -----------------------------------------------------------

    def create_cursor(self) -> Cursor:
        """Create a cursor over this store. Destroy it before closing the store."""
        self._check_open()
        cursor = self._require("create_cursor", self._create_cursor)
        self._cursors.append(cursor)
        return cursor

    def entries(self) -> Iterator[Entry]:
        """Yield every entry through a fresh cursor."""
        with self.create_cursor() as cursor:
            for key in cursor:
                value = cursor.value()
                if value is not None:
                    yield Entry(key, value)

    # -- Error introspection -------------------------------------------------

    def last_error(self) -> ErrorCode:
        """Return the code recorded by the most recent operation."""
        return self._last_error

    @property
    def last_error_detail(self) -> str | None:
        """Native message behind the last error, when the engine gave one."""
        return self._last_error_detail

    @classmethod
    def describe_error(cls, code: ErrorCode) -> str:
        """Describe an error code in this engine's own wording."""
        if code in cls.ERROR_MESSAGES:
            return cls.ERROR_MESSAGES[code]
        return cls.ERROR_MESSAGES.get(ErrorCode.UNKNOWN, "Unknown error")

    # -- Internal helpers ----------------------------------------------------

    def _check_open(self) -> None:
        if not self._is_open:
            self._last_error = ErrorCode.CLOSED
            raise StoreClosedError(f"{self.path} is not open")

    def _record(self, code: ErrorCode, exc: BaseException | None = None) -> None:
        self._last_error = code
        self._last_error_detail = str(exc) if exc is not None else None

    def _attempt(self, operation: str, func: Callable[..., T], *args: Any, failed: T) -> T:
        """Run a native call, turning engine exceptions into ``failed``."""
        self._record(ErrorCode.SUCCESS)
        try:
            return func(*args)
        except self.native_errors as exc:
            self._record(self._classify(exc), exc)
            logger.warning(
                "Storage operation failed",
                operation=operation,
                backend=self.backend_name,
                error=str(exc),
            )
            return failed

    def _require(self, operation: str, func: Callable[[], T]) -> T:
        """Run a native call whose failure cannot be expressed as a return value."""
        try:
            return func()
        except self.native_errors as exc:
            self._record(self._classify(exc), exc)
            logger.warning(
                "Storage operation failed",
                operation=operation,
                backend=self.backend_name,
                error=str(exc),
            )
            raise StorageOperationError(f"{operation} failed: {exc}") from exc

    def _forget_cursor(self, cursor: Cursor) -> None:
        if cursor in self._cursors:
            self._cursors.remove(cursor)

    def _classify(self, exc: BaseException) -> ErrorCode:
        """Map a native exception onto an ErrorCode. Override per engine."""
        if isinstance(exc, KeyError):
            return ErrorCode.NOT_FOUND
        if isinstance(exc, PermissionError):
            return ErrorCode.READ_ONLY
        if isinstance(exc, OSError):
            return ErrorCode.IO_ERROR
        return ErrorCode.UNKNOWN

    # -- Native hooks --------------------------------------------------------

    @abstractmethod
    def _open(self) -> None:
        ...

    @abstractmethod
    def _close(self) -> None:
        ...

    @abstractmethod
    def _fetch(self, key: bytes) -> bytes | None:
        ...

    @abstractmethod
    def _try_insert(self, key: bytes, value: bytes) -> bool:
        ...

    @abstractmethod
    def _store_value(self, key: bytes, value: bytes) -> bool:
        ...

    @abstractmethod
    def _delete(self, key: bytes) -> bool:
        ...

    @abstractmethod
    def _create_cursor(self) -> Cursor:
        ...
