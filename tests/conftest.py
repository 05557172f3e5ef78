import pytest

from drop.storage import KVStore, create_store
from drop.storage.base import Cursor

BACKEND_FILES = {
    "gdbm": "drop.dbm",
    "lmdb": "drop.mdb",
}


def require_backend(name: str) -> None:
    if name == "gdbm":
        pytest.importorskip("dbm.gnu")


@pytest.fixture(params=sorted(BACKEND_FILES))
def backend_name(request):
    require_backend(request.param)
    return request.param


@pytest.fixture()
def db_path(tmp_path, backend_name):
    return tmp_path / BACKEND_FILES[backend_name]


@pytest.fixture()
def store(db_path):
    kv = create_store(db_path).open()
    yield kv
    kv.close()


@pytest.fixture()
def lmdb_store(tmp_path):
    kv = create_store(tmp_path / "drop.mdb").open()
    yield kv
    kv.close()


class ScriptedSource:
    """Value source answering from a fixed script, then with ""."""

    def __init__(self, *answers: str):
        self.answers = list(answers)
        self.reads = 0

    def read(self) -> str:
        self.reads += 1
        if self.answers:
            return self.answers.pop(0)
        return ""


class RecordingSink:
    def __init__(self):
        self.values: list[str] = []

    def write(self, value: str) -> None:
        self.values.append(value)


class MemoryCursor(Cursor):
    def __init__(self, store):
        super().__init__(store)
        self._keys = sorted(store.data)
        self._index = -1

    def _first(self):
        self._index = 0
        return bool(self._keys)

    def _next(self):
        self._index += 1
        return self._index < len(self._keys)

    def _key(self):
        return self._keys[self._index]

    def _value(self):
        return self._store.data.get(self._keys[self._index])

    def _release(self):
        self._keys = []


class MemoryStore(KVStore):
    """In-memory store with switchable write failures."""

    backend_name = "memory"
    native_errors = (OSError,)

    def __init__(self, path=":memory:"):
        super().__init__(path)
        self.data: dict[bytes, bytes] = {}
        self.fail_inserts = False
        self.fail_stores = False
        self.fail_close = False

    def _open(self):
        pass

    def _close(self):
        if self.fail_close:
            raise OSError("close failed")

    def _fetch(self, key):
        return self.data.get(key)

    def _try_insert(self, key, value):
        if self.fail_inserts:
            raise OSError("disk on fire")
        if key in self.data:
            return False
        self.data[key] = value
        return True

    def _store_value(self, key, value):
        if self.fail_stores:
            raise OSError("disk on fire")
        self.data[key] = value
        return True

    def _delete(self, key):
        return self.data.pop(key, None) is not None

    def _create_cursor(self):
        return MemoryCursor(self)


FAKE_XCLIP = """#!/bin/sh
# usage: xclip -selection NAME (-i|-o)
store="$(dirname "$0")/selection-$2"
case "$3" in
  -o)
    if [ ! -f "$store" ]; then
      echo "Error: target STRING not available" >&2
      exit 1
    fi
    cat "$store"
    ;;
  -i)
    cat > "$store"
    ;;
esac
"""


@pytest.fixture()
def fake_xclip(tmp_path):
    """An xclip stand-in keeping each selection in a file beside it."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "xclip"
    script.write_text(FAKE_XCLIP)
    script.chmod(0o755)
    return script


@pytest.fixture()
def scripted():
    return ScriptedSource


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def memory_store_class():
    return MemoryStore


@pytest.fixture()
def memory_store():
    kv = MemoryStore().open()
    yield kv
    kv.close()
