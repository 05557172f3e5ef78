"""Hash-table storage backend on GNU dbm.

GNU dbm has no cursor object. Iteration is driven by keys: ``firstkey()``
returns a key and ``nextkey(previous)`` needs the key handed out last time.
Values are not carried along and must be fetched with a second lookup.
``GdbmCursor`` keeps the last key it saw so it can offer the uniform cursor
primitives on top of that protocol. Iteration order is the hash order.
"""
import dbm.gnu
from pathlib import Path

from ..base import Cursor, ErrorCode, KVStore


class GdbmCursor(Cursor):
    """Cursor bridging GNU dbm's key-chained iteration."""

    def __init__(self, store: "GdbmStore") -> None:
        super().__init__(store)
        self._db = store._db
        self._current: bytes | None = None

    def _first(self) -> bool:
        self._current = self._db.firstkey()
        return self._current is not None

    def _next(self) -> bool:
        self._current = self._db.nextkey(self._current)
        return self._current is not None

    def _key(self) -> bytes:
        return self._current

    def _value(self) -> bytes | None:
        try:
            return self._db[self._current]
        except KeyError:
            return None

    def _release(self) -> None:
        self._current = None
        self._db = None


class GdbmStore(KVStore):
    """Key-value store backed by a GNU dbm hash file.

    The file is created with owner-only permissions if it does not exist.
    """

    backend_name = "gdbm"
    native_errors = (dbm.gnu.error,)
    ERROR_MESSAGES = {
        ErrorCode.SUCCESS: "No error",
        ErrorCode.NOT_FOUND: "Item not found",
        ErrorCode.KEY_EXISTS: "Cannot replace",
        ErrorCode.READ_ONLY: "Reader can't store",
        ErrorCode.STORAGE_FULL: "Malloc error",
        ErrorCode.CORRUPTED: "Bad magic number",
        ErrorCode.IO_ERROR: "File write error",
        ErrorCode.INVALID: "Illegal data",
        ErrorCode.CLOSED: "Database is not open",
        ErrorCode.UNKNOWN: "Unknown error",
    }

    def __init__(self, path: str | Path, mode: int = 0o600, synchronous: bool = False):
        """Initialize the GNU dbm store.

        Args:
            path: Database file path
            mode: Permission bits used when the file is created
            synchronous: Flush every write to disk immediately
        """
        super().__init__(path)
        self.mode = mode
        self.synchronous = synchronous
        self._db = None

    def _open(self) -> None:
        flags = "cs" if self.synchronous else "c"
        self._db = dbm.gnu.open(str(self.path), flags, self.mode)

    def _close(self) -> None:
        db, self._db = self._db, None
        try:
            db.sync()
        finally:
            db.close()

    def _fetch(self, key: bytes) -> bytes | None:
        try:
            return self._db[key]
        except KeyError:
            return None

    def _try_insert(self, key: bytes, value: bytes) -> bool:
        if key in self._db:
            return False
        self._db[key] = value
        return True

    def _store_value(self, key: bytes, value: bytes) -> bool:
        self._db[key] = value
        return True

    def _delete(self, key: bytes) -> bool:
        try:
            del self._db[key]
        except KeyError:
            return False
        return True

    def _create_cursor(self) -> GdbmCursor:
        return GdbmCursor(self)

    def _classify(self, exc: BaseException) -> ErrorCode:
        message = str(exc).lower()
        if "reader can't" in message or "can't be writer" in message or "permission" in message:
            return ErrorCode.READ_ONLY
        if "not found" in message:
            return ErrorCode.NOT_FOUND
        if "cannot replace" in message:
            return ErrorCode.KEY_EXISTS
        if "malloc" in message or "no space" in message:
            return ErrorCode.STORAGE_FULL
        if "magic" in message or "malformed" in message or "corrupt" in message:
            return ErrorCode.CORRUPTED
        if "illegal" in message or "invalid" in message:
            return ErrorCode.INVALID
        return super()._classify(exc)
