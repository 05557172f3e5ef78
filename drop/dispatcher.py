"""Command dispatch.

``CommandDispatcher`` maps a resolved ``Command`` (operation plus key) onto
store calls and the upsert workflow, and writes user-facing output.
``run_command`` wraps one whole invocation: locate the database, resolve its
backend, open it, dispatch, close.

Exit policy: only failures that prevent the command from running at all
(no database location, no backend, cannot open, selection unavailable)
return a failing status. Missing keys, refused overwrites, failed writes
and a failed close are reported on stderr and still exit 0.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TextIO

import click

from .config import ConfigurationError, DropConfig
from .logging import bound_context, get_logger
from .storage import (
    BackendResolutionError,
    KVStore,
    OpenFailedError,
    StorageError,
    backend_for_path,
    load_backend,
    normalize_key,
)
from .transfer import (
    CONFIRM_PROMPT,
    VALUE_PROMPT,
    ConsolePrompt,
    ConsoleSink,
    SelectionTransfer,
    TransferError,
    ValueSink,
    ValueSource,
)
from .workflow import UpsertResult, UpsertState, UpsertWorkflow

logger = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

KEY_COLUMN_WIDTH = 10
CLOSE_FAILED_MESSAGE = "Error closing database. Continuing, since I'm out of ideas..."


class Operation(str, Enum):
    ADD = "add"
    DELETE = "delete"
    LIST = "list"
    FULL_LIST = "full_list"
    PRINT = "print"


class TransferType(str, Enum):
    CONSOLE = "console"
    PRIMARY = "primary"
    CLIPBOARD = "clipboard"


@dataclass(frozen=True)
class Command:
    """A fully resolved request: what to do, to which key, through which channel."""
    operation: Operation
    key: str | None = None
    transfer: TransferType = TransferType.CONSOLE


@dataclass
class Transfers:
    """Collaborators supplying and receiving values for one command."""
    value_source: ValueSource
    value_sink: ValueSink
    confirm: ValueSource


def default_transfers(command: Command, config: DropConfig) -> Transfers:
    """Console prompts, or an X selection for the x-variants of add/print."""
    confirm = ConsolePrompt(CONFIRM_PROMPT)
    if command.transfer is TransferType.CONSOLE:
        return Transfers(
            value_source=ConsolePrompt(VALUE_PROMPT, repeat_until_value=True),
            value_sink=ConsoleSink(),
            confirm=confirm,
        )
    selection = SelectionTransfer(command.transfer.value, command=config.xclip_command)
    return Transfers(value_source=selection, value_sink=selection, confirm=confirm)


def format_listing_line(key: str, value: str | None = None) -> str:
    """Format one listing line; values are aligned after a padded key column."""
    if value is None:
        return key
    padding = " " * max(0, KEY_COLUMN_WIDTH - len(key))
    return f"{key}: {padding}{value}"


class CommandDispatcher:
    """Run operations against an open store."""

    def __init__(
        self,
        store: KVStore,
        transfers: Transfers,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            store: Open store
            transfers: Value source, value sink and confirmation source
            out: Stream for command output (current stdout when None)
            err: Stream for diagnostics (current stderr when None)
        """
        self.store = store
        self.transfers = transfers
        self.out = out
        self.err = err

    def dispatch(self, command: Command) -> None:
        """Run one command. Storage failures are reported, not raised.

        Raises:
            TransferError: The value source or sink failed.
        """
        logger.debug(
            "Dispatching command",
            operation=command.operation.value,
            transfer=command.transfer.value,
        )
        try:
            if command.operation is Operation.ADD:
                self.add(command.key or "")
            elif command.operation is Operation.DELETE:
                self.delete(command.key or "")
            elif command.operation is Operation.PRINT:
                self.print_entry(command.key)
            elif command.operation is Operation.LIST:
                self.list_entries(full=False)
            elif command.operation is Operation.FULL_LIST:
                self.list_entries(full=True)
        except StorageError as exc:
            self._error(f"Storage error: {exc}")

    # -- Operations ----------------------------------------------------------

    def add(self, key: str) -> UpsertResult | None:
        """Read a value and insert it at key, confirming any overwrite."""
        key = normalize_key(key)
        if not key:
            self._error("Invalid key.")
            return None

        value = self.transfers.value_source.read()
        if not value:
            self._error("Nothing to add.")
            return None

        workflow = UpsertWorkflow(self.store, self.transfers.confirm)
        result = workflow.run(key, value)
        if result.outcome is UpsertState.WRITE_FAILED:
            self._error(f"Could not write: {self.store.describe_error(result.error)}")
        return result

    def delete(self, key: str) -> bool:
        """Delete the entry at key."""
        key = normalize_key(key)
        if not key:
            self._error("Invalid key.")
            return False
        if self.store.delete(key):
            return True
        description = self.store.describe_error(self.store.last_error())
        self._error(f"Could not delete '{key}': {description}")
        return False

    def print_entry(self, key: str | None) -> bool:
        """Hand the value at key to the value sink. No key: nothing to do."""
        if key is None:
            return False
        key = normalize_key(key)
        if not key:
            self._error("Invalid key.")
            return False
        value = self.store.fetch(key)
        if value is None:
            self._error(f"'{key}' does not exist.")
            return False
        self.transfers.value_sink.write(value)
        return True

    def list_entries(self, full: bool = False) -> int:
        """Write every key (and with full=True, its value), one per line.

        Returns the number of entries listed.
        """
        count = 0
        with self.store.create_cursor() as cursor:
            if not cursor.first():
                self._echo("Database is empty.")
                return 0
            while True:
                key = cursor.key()
                value = cursor.value() if full else None
                self._echo(format_listing_line(key, value))
                count += 1
                if not cursor.next():
                    break
        return count

    # -- Output --------------------------------------------------------------

    def _echo(self, message: str) -> None:
        click.echo(message, file=self.out)

    def _error(self, message: str) -> None:
        click.echo(message, file=self.err, err=True)


def run_command(
    command: Command,
    config: DropConfig,
    transfers: Transfers | None = None,
) -> int:
    """Run one command against the configured database and return an exit status."""
    try:
        path = config.resolve_database_path()
        backend = backend_for_path(path)
        backend_class = load_backend(backend)
    except ConfigurationError as exc:
        click.echo(str(exc), err=True)
        return EXIT_FAILURE
    except BackendResolutionError as exc:
        click.echo(exc.detail, err=True)
        return EXIT_FAILURE

    store = backend_class(path, **config.backend_options(backend))
    try:
        store.open()
    except OpenFailedError as exc:
        click.echo(f"Could not open database: {path}: {exc.detail}", err=True)
        return EXIT_FAILURE

    status = EXIT_SUCCESS
    with bound_context(backend=backend, database=str(path)):
        try:
            if transfers is None:
                transfers = default_transfers(command, config)
            CommandDispatcher(store, transfers).dispatch(command)
        except TransferError as exc:
            click.echo(str(exc), err=True)
            status = EXIT_FAILURE
        finally:
            if not store.close():
                click.echo(CLOSE_FAILED_MESSAGE, err=True)
    return status
