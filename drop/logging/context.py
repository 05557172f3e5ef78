"""Per-invocation logging context.

Values bound here are attached to every log entry emitted while a command
runs, so a trace shows which backend and database file it belongs to.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

_bound: ContextVar[dict[str, Any]] = ContextVar("drop_log_context", default={})


def bind_context(**values: Any) -> None:
    """Attach values to every subsequent log entry.

    Example:
        >>> bind_context(backend="lmdb", database="/home/me/.drop.mdb")
    """
    _bound.set({**_bound.get(), **values})


def unbind_context(*keys: str) -> None:
    _bound.set({k: v for k, v in _bound.get().items() if k not in keys})


def clear_context() -> None:
    _bound.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the values currently bound."""
    return dict(_bound.get())


@contextmanager
def bound_context(**values: Any) -> Iterator[None]:
    """Bind values for the duration of a with-block, then restore the previous context."""
    token = _bound.set({**_bound.get(), **values})
    try:
        yield
    finally:
        _bound.reset(token)
