"""B-tree storage backend on LMDB.

LMDB keeps keys in a B+ tree and offers a real cursor handle with
first/next/key/value, so ``LmdbCursor`` maps almost one-to-one onto it.
The cursor owns a read transaction for its whole life, which gives it a
consistent snapshot in byte-lexicographic key order.

The environment runs in single-file mode: the database is exactly the
configured path, plus a ``<path>-lock`` file maintained by LMDB.
"""
from pathlib import Path

import lmdb

from ..base import Cursor, ErrorCode, KVStore

DEFAULT_MAP_SIZE = 10 * 1024 * 1024  # 10MB

_CORRUPTION_ERRORS = (
    lmdb.CorruptedError,
    lmdb.PageNotFoundError,
    lmdb.PanicError,
    lmdb.VersionMismatchError,
    lmdb.InvalidError,
)


class LmdbCursor(Cursor):
    """Cursor over a read-only LMDB transaction."""

    def __init__(self, store: "LmdbStore") -> None:
        super().__init__(store)
        self._txn = store._env.begin(write=False)
        self._native = self._txn.cursor()

    def _first(self) -> bool:
        return self._native.first()

    def _next(self) -> bool:
        return self._native.next()

    def _key(self) -> bytes:
        return self._native.key()

    def _value(self) -> bytes | None:
        return self._native.value()

    def _release(self) -> None:
        native, txn = self._native, self._txn
        self._native = self._txn = None
        try:
            native.close()
        finally:
            txn.abort()


class LmdbStore(KVStore):
    """Key-value store backed by a single-file LMDB environment.

    Each point operation runs in its own short transaction and is durable
    once it returns (unless ``synchronous`` is turned off).
    """

    backend_name = "lmdb"
    native_errors = (lmdb.Error,)
    ERROR_MESSAGES = {
        ErrorCode.SUCCESS: "Successful return: 0",
        ErrorCode.NOT_FOUND: "MDB_NOTFOUND: No matching key/data pair found",
        ErrorCode.KEY_EXISTS: "MDB_KEYEXIST: Key/data pair already exists",
        ErrorCode.READ_ONLY: "Permission denied",
        ErrorCode.STORAGE_FULL: "MDB_MAP_FULL: Environment mapsize limit reached",
        ErrorCode.CORRUPTED: "MDB_CORRUPTED: Located page was wrong type",
        ErrorCode.IO_ERROR: "Input/output error",
        ErrorCode.INVALID: "MDB_BAD_VALSIZE: Unsupported size of key/DB name/data",
        ErrorCode.CLOSED: "Attempt to operate on closed/deleted/dropped object",
        ErrorCode.UNKNOWN: "Unknown error",
    }

    def __init__(
        self,
        path: str | Path,
        map_size: int = DEFAULT_MAP_SIZE,
        mode: int = 0o600,
        synchronous: bool = True,
    ):
        """Initialize the LMDB store.

        Args:
            path: Database file path
            map_size: Maximum size the database may grow to, in bytes
            mode: Permission bits used when the file is created
            synchronous: Flush to disk on every commit
        """
        super().__init__(path)
        self.map_size = map_size
        self.mode = mode
        self.synchronous = synchronous
        self._env = None

    def _open(self) -> None:
        self._env = lmdb.open(
            str(self.path),
            map_size=self.map_size,
            subdir=False,
            create=True,
            mode=self.mode,
            sync=self.synchronous,
            max_dbs=0,
        )

    def _close(self) -> None:
        env, self._env = self._env, None
        try:
            env.sync(True)
        finally:
            env.close()

    def _fetch(self, key: bytes) -> bytes | None:
        with self._env.begin() as txn:
            return txn.get(key)

    def _try_insert(self, key: bytes, value: bytes) -> bool:
        with self._env.begin(write=True) as txn:
            return txn.put(key, value, overwrite=False)

    def _store_value(self, key: bytes, value: bytes) -> bool:
        with self._env.begin(write=True) as txn:
            return txn.put(key, value)

    def _delete(self, key: bytes) -> bool:
        with self._env.begin(write=True) as txn:
            return txn.delete(key)

    def _create_cursor(self) -> LmdbCursor:
        return LmdbCursor(self)

    def _classify(self, exc: BaseException) -> ErrorCode:
        if isinstance(exc, lmdb.NotFoundError):
            return ErrorCode.NOT_FOUND
        if isinstance(exc, lmdb.KeyExistsError):
            return ErrorCode.KEY_EXISTS
        if isinstance(exc, lmdb.ReadonlyError):
            return ErrorCode.READ_ONLY
        if isinstance(exc, lmdb.MapFullError):
            return ErrorCode.STORAGE_FULL
        if isinstance(exc, _CORRUPTION_ERRORS):
            return ErrorCode.CORRUPTED
        if isinstance(exc, lmdb.BadValsizeError):
            return ErrorCode.INVALID
        if isinstance(exc, lmdb.Error):
            return ErrorCode.IO_ERROR
        return super()._classify(exc)
