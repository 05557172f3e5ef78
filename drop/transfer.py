"""Value sources and sinks.

A value source supplies text (the value to add, or the answer to the
overwrite question); a value sink receives the value being printed. The
dispatcher and the upsert workflow only rely on these two protocols:

    source.read() -> str    blocking; "" means no value / abort
    sink.write(value)       deliver the value

Implementations:
- ConsolePrompt: reads one line from the terminal
- ConsoleSink: writes the value to a text stream
- SelectionTransfer: reads or owns an X selection (PRIMARY or CLIPBOARD)
  through the ``xclip`` utility
"""
from __future__ import annotations

import subprocess
import sys
from typing import Literal, Protocol, TextIO

from .logging import get_logger

logger = get_logger(__name__)

SelectionName = Literal["primary", "clipboard"]

VALUE_PROMPT = "   : "
CONFIRM_PROMPT = "Overwrite? [y/N] "

DEFAULT_XCLIP = "xclip"
XCLIP_TIMEOUT_SECONDS = 10


class TransferError(Exception):
    """A selection transfer could not be completed."""
    pass


class ValueSource(Protocol):
    """Protocol for anything that supplies a line of text."""

    def read(self) -> str:
        """Return the text, or "" when there is none."""
        ...


class ValueSink(Protocol):
    """Protocol for anything that accepts a value."""

    def write(self, value: str) -> None:
        ...


class ConsolePrompt:
    """Read a line from the terminal with a prompt.

    End of input or Ctrl-C count as no response and yield "".
    """

    def __init__(self, prompt: str, repeat_until_value: bool = False):
        """Initialize the prompt.

        Args:
            prompt: Text shown before reading
            repeat_until_value: Prompt again after an empty line
        """
        self.prompt = prompt
        self.repeat_until_value = repeat_until_value

    def read(self) -> str:
        while True:
            try:
                line = input(self.prompt)
            except (EOFError, KeyboardInterrupt):
                return ""
            if line or not self.repeat_until_value:
                return line


class ConsoleSink:
    """Write values, one per line, to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    def write(self, value: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(value + "\n")
        stream.flush()


class SelectionTransfer:
    """Read from or publish to an X selection buffer via ``xclip``.

    Works as both a value source (``read``) and a value sink (``write``).
    When writing, ``xclip`` keeps serving the selection in the background
    until another client takes ownership.
    """

    def __init__(self, selection: SelectionName = "primary", command: str = DEFAULT_XCLIP):
        """Initialize the transfer.

        Args:
            selection: "primary" or "clipboard"
            command: xclip executable to run
        """
        if selection not in ("primary", "clipboard"):
            raise ValueError(f"Unknown selection: {selection!r}")
        self.selection = selection
        self.command = command

    def read(self) -> str:
        """Return the current selection contents ("" if the selection is empty)."""
        proc = self._run(["-o"])
        return proc.stdout

    def write(self, value: str) -> None:
        """Take ownership of the selection and offer value through it."""
        self._run(["-i"], value)

    def _run(self, args: list[str], data: str | None = None) -> subprocess.CompletedProcess:
        argv = [self.command, "-selection", self.selection, *args]
        # The forked selection owner inherits its pipes, so only capture on read
        capture = subprocess.PIPE if data is None else subprocess.DEVNULL
        try:
            proc = subprocess.run(
                argv,
                input=data,
                stdout=capture,
                stderr=capture,
                encoding="utf-8",
                errors="replace",
                timeout=XCLIP_TIMEOUT_SECONDS,
            )
        except FileNotFoundError as exc:
            raise TransferError(f"{self.command} is not available on this system") from exc
        except subprocess.TimeoutExpired as exc:
            raise TransferError(
                f"{self.command} timed out after {XCLIP_TIMEOUT_SECONDS}s"
            ) from exc

        if proc.returncode != 0:
            detail = (proc.stderr or "").strip() or f"exit status {proc.returncode}"
            # xclip -o exits non-zero when the selection is simply empty
            if args == ["-o"] and "target string not available" in detail.lower():
                return subprocess.CompletedProcess(argv, 0, "", proc.stderr)
            raise TransferError(f"Could not access the {self.selection} selection: {detail}")

        logger.debug("Selection transfer", selection=self.selection, direction=args[0])
        return proc
