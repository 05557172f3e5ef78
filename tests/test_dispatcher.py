"""Tests for command dispatch and whole-invocation exit codes."""
import pytest

from drop import dispatcher
from drop.config import DropConfig
from drop.dispatcher import (
    CLOSE_FAILED_MESSAGE,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    Command,
    CommandDispatcher,
    Operation,
    TransferType,
    Transfers,
    default_transfers,
    format_listing_line,
    run_command,
)
from drop.transfer import ConsolePrompt, SelectionTransfer, TransferError
from drop.workflow import UpsertState


@pytest.fixture()
def make_transfers(scripted, sink):
    def factory(values=(), answers=()):
        return Transfers(
            value_source=scripted(*values),
            value_sink=sink,
            confirm=scripted(*answers),
        )
    return factory


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "key, value, expected",
    [
        ("a", None, "a"),
        ("a", "1", "a:          1"),
        ("github", "hunter2", "github:     hunter2"),
        ("exactly10c", "v", "exactly10c: v"),
        ("longer_than_ten", "v", "longer_than_ten: v"),
    ],
)
def test_format_listing_line(key, value, expected):
    assert format_listing_line(key, value) == expected


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class TestAdd:
    def test_adds_value_from_source(self, lmdb_store, make_transfers):
        d = CommandDispatcher(lmdb_store, make_transfers(values=["hunter2"]))
        result = d.add("github")
        assert result.outcome is UpsertState.INSERTED
        assert lmdb_store.fetch("github") == "hunter2"

    def test_empty_value_adds_nothing(self, lmdb_store, make_transfers, capsys):
        d = CommandDispatcher(lmdb_store, make_transfers(values=[""]))
        assert d.add("github") is None
        assert "Nothing to add." in capsys.readouterr().err
        assert lmdb_store.fetch("github") is None

    def test_invalid_key(self, lmdb_store, make_transfers, capsys):
        transfers = make_transfers(values=["v"])
        d = CommandDispatcher(lmdb_store, transfers)
        assert d.add("  ") is None
        assert "Invalid key." in capsys.readouterr().err
        assert transfers.value_source.reads == 0

    def test_overwrite_declined(self, lmdb_store, make_transfers):
        lmdb_store.store("foo", "bar")
        d = CommandDispatcher(lmdb_store, make_transfers(values=["baz"], answers=["n"]))
        assert d.add("foo").outcome is UpsertState.DECLINED
        assert lmdb_store.fetch("foo") == "bar"

    def test_write_failure_is_reported(self, memory_store, make_transfers, capsys):
        memory_store.fail_inserts = True
        d = CommandDispatcher(memory_store, make_transfers(values=["v"]))
        assert d.add("k").outcome is UpsertState.WRITE_FAILED
        assert "Could not write: Unknown error" in capsys.readouterr().err


class TestDelete:
    def test_deletes(self, lmdb_store, make_transfers):
        lmdb_store.store("a", "1")
        assert CommandDispatcher(lmdb_store, make_transfers()).delete("a") is True
        assert lmdb_store.fetch("a") is None

    def test_missing_key(self, lmdb_store, make_transfers, capsys):
        assert CommandDispatcher(lmdb_store, make_transfers()).delete("ghost") is False
        err = capsys.readouterr().err
        assert "Could not delete 'ghost'" in err
        assert "MDB_NOTFOUND" in err


class TestPrint:
    def test_value_goes_to_sink(self, lmdb_store, make_transfers, sink):
        lmdb_store.store("a", "1")
        assert CommandDispatcher(lmdb_store, make_transfers()).print_entry("a") is True
        assert sink.values == ["1"]

    def test_missing_key(self, lmdb_store, make_transfers, sink, capsys):
        assert CommandDispatcher(lmdb_store, make_transfers()).print_entry("zzz") is False
        assert "'zzz' does not exist." in capsys.readouterr().err
        assert sink.values == []

    def test_no_key_does_nothing(self, lmdb_store, make_transfers, sink, capsys):
        assert CommandDispatcher(lmdb_store, make_transfers()).print_entry(None) is False
        captured = capsys.readouterr()
        assert captured.out == "" and captured.err == ""
        assert sink.values == []

    def test_key_is_normalized(self, lmdb_store, make_transfers, sink):
        lmdb_store.store("foo", "bar")
        CommandDispatcher(lmdb_store, make_transfers()).print_entry("foo extra")
        assert sink.values == ["bar"]


class TestList:
    def test_empty(self, lmdb_store, make_transfers, capsys):
        assert CommandDispatcher(lmdb_store, make_transfers()).list_entries() == 0
        assert capsys.readouterr().out == "Database is empty.\n"

    def test_keys_only(self, lmdb_store, make_transfers, capsys):
        lmdb_store.store("b", "2")
        lmdb_store.store("a", "1")
        assert CommandDispatcher(lmdb_store, make_transfers()).list_entries() == 2
        assert capsys.readouterr().out == "a\nb\n"

    def test_full_listing(self, lmdb_store, make_transfers, capsys):
        lmdb_store.store("b", "2")
        lmdb_store.store("a", "1")
        CommandDispatcher(lmdb_store, make_transfers()).list_entries(full=True)
        assert capsys.readouterr().out == "a:          1\nb:          2\n"

    def test_dispatch_routes_operations(self, lmdb_store, make_transfers, capsys):
        lmdb_store.store("a", "1")
        d = CommandDispatcher(lmdb_store, make_transfers())
        d.dispatch(Command(Operation.FULL_LIST))
        d.dispatch(Command(Operation.DELETE, "a"))
        d.dispatch(Command(Operation.LIST))
        assert capsys.readouterr().out == "a:          1\nDatabase is empty.\n"


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------

def test_console_transfers_by_default():
    transfers = default_transfers(Command(Operation.ADD, "k"), DropConfig())
    assert isinstance(transfers.value_source, ConsolePrompt)
    assert transfers.value_source.repeat_until_value
    assert isinstance(transfers.confirm, ConsolePrompt)


@pytest.mark.parametrize("transfer", [TransferType.PRIMARY, TransferType.CLIPBOARD])
def test_selection_transfers(transfer):
    config = DropConfig(xclip_command="/opt/bin/xclip")
    transfers = default_transfers(Command(Operation.PRINT, "k", transfer), config)
    assert isinstance(transfers.value_sink, SelectionTransfer)
    assert transfers.value_sink.selection == transfer.value
    assert transfers.value_sink.command == "/opt/bin/xclip"
    assert isinstance(transfers.confirm, ConsolePrompt)


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------

class TestRunCommand:
    def test_success(self, tmp_path, make_transfers):
        config = DropConfig(database=tmp_path / "drop.mdb")
        status = run_command(Command(Operation.ADD, "k"), config, make_transfers(values=["v"]))
        assert status == EXIT_SUCCESS

        transfers = make_transfers()
        assert run_command(Command(Operation.PRINT, "k"), config, transfers) == EXIT_SUCCESS
        assert transfers.value_sink.values == ["v"]

    def test_missing_key_still_succeeds(self, tmp_path, make_transfers):
        config = DropConfig(database=tmp_path / "drop.mdb")
        assert run_command(Command(Operation.PRINT, "nope"), config, make_transfers()) == EXIT_SUCCESS

    def test_no_database_location(self, make_transfers, capsys):
        status = run_command(Command(Operation.LIST), DropConfig(), make_transfers())
        assert status == EXIT_FAILURE
        assert "Neither XDG_DATA_HOME nor HOME is set" in capsys.readouterr().err

    def test_open_failure(self, tmp_path, make_transfers, capsys):
        path = tmp_path / "missing" / "drop.mdb"
        status = run_command(Command(Operation.LIST), DropConfig(database=path), make_transfers())
        assert status == EXIT_FAILURE
        assert f"Could not open database: {path}" in capsys.readouterr().err

    def test_transfer_failure(self, tmp_path, make_transfers, capsys):
        class Unavailable:
            def read(self):
                raise TransferError("xclip is not available on this system")

            def write(self, value):
                raise TransferError("xclip is not available on this system")

        transfers = make_transfers()
        transfers.value_source = Unavailable()
        config = DropConfig(database=tmp_path / "drop.mdb")
        assert run_command(Command(Operation.ADD, "k"), config, transfers) == EXIT_FAILURE
        assert "xclip is not available" in capsys.readouterr().err

    def test_close_failure_is_not_fatal(
        self, tmp_path, monkeypatch, memory_store_class, make_transfers, capsys
    ):
        class CloseFails(memory_store_class):
            def _close(self):
                raise OSError("flush failed")

        monkeypatch.setattr(dispatcher, "load_backend", lambda name: CloseFails)
        config = DropConfig(database=tmp_path / "drop.dbm")
        assert run_command(Command(Operation.LIST), config, make_transfers()) == EXIT_SUCCESS
        assert CLOSE_FAILED_MESSAGE in capsys.readouterr().err
