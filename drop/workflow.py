"""Add-with-confirmation workflow.

States::

    ATTEMPT_INSERT --inserted--> INSERTED
          |
       conflict
          v
      CONFLICT --key missing--> WRITE_FAILED
          |
       key exists
          v
    AWAIT_CONFIRMATION --"y..."--> OVERWRITTEN   (or WRITE_FAILED)
          |
       anything else
          v
       DECLINED

A new key costs a single conditional insert. An existing key is only
replaced after an explicit yes, so stored secrets are never clobbered
silently.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .logging import get_logger
from .storage import ErrorCode, KVStore, normalize_key
from .transfer import ValueSource

logger = get_logger(__name__)


class UpsertState(str, Enum):
    ATTEMPT_INSERT = "attempt_insert"
    CONFLICT = "conflict"
    AWAIT_CONFIRMATION = "await_confirmation"
    INSERTED = "inserted"
    OVERWRITTEN = "overwritten"
    DECLINED = "declined"
    WRITE_FAILED = "write_failed"


TERMINAL_STATES = frozenset({
    UpsertState.INSERTED,
    UpsertState.OVERWRITTEN,
    UpsertState.DECLINED,
    UpsertState.WRITE_FAILED,
})


@dataclass
class UpsertResult:
    """Outcome of one workflow run.

    Attributes:
        outcome: Terminal state reached.
        key: The normalized key that was written (or not).
        error: Store error code when outcome is WRITE_FAILED.
        trail: Every state visited, in order.
    """
    outcome: UpsertState
    key: str
    error: ErrorCode | None = None
    trail: list[UpsertState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome in (UpsertState.INSERTED, UpsertState.OVERWRITTEN)


def is_confirmation(answer: str | None) -> bool:
    """Only an answer starting with 'y' or 'Y' confirms."""
    return bool(answer) and answer[0] in "yY"


class UpsertWorkflow:
    """Insert a value, asking before overwriting an existing one."""

    def __init__(self, store: KVStore, confirm: ValueSource):
        """Initialize the workflow.

        Args:
            store: Open store to write to
            confirm: Source of the answer to the overwrite question
        """
        self.store = store
        self.confirm = confirm

    def run(self, key: str, value: str) -> UpsertResult:
        """Run the workflow for key with an already acquired value.

        Raises:
            ValueError: The key is empty after normalization.
        """
        key = normalize_key(key)
        if not key:
            raise ValueError("Key must not be empty")

        result = UpsertResult(outcome=UpsertState.ATTEMPT_INSERT, key=key)
        self._enter(result, UpsertState.ATTEMPT_INSERT)

        if self.store.try_insert(key, value):
            return self._enter(result, UpsertState.INSERTED)

        error = self.store.last_error()
        self._enter(result, UpsertState.CONFLICT)

        # A failed insert with no existing entry is a write failure, not a conflict
        if self.store.fetch(key) is None:
            result.error = error
            return self._enter(result, UpsertState.WRITE_FAILED)

        self._enter(result, UpsertState.AWAIT_CONFIRMATION)
        if not is_confirmation(self.confirm.read()):
            return self._enter(result, UpsertState.DECLINED)

        if not self.store.store(key, value):
            result.error = self.store.last_error()
            return self._enter(result, UpsertState.WRITE_FAILED)

        return self._enter(result, UpsertState.OVERWRITTEN)

    def _enter(self, result: UpsertResult, state: UpsertState) -> UpsertResult:
        result.trail.append(state)
        result.outcome = state
        if state in TERMINAL_STATES:
            logger.debug(
                "Upsert finished",
                key=result.key,
                outcome=state.value,
                backend=self.store.backend_name,
            )
        return result
