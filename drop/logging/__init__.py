"""Structured logging for drop.

Logs are written to stderr (and optionally a rotating file) so they never
mix with the values and listings the command prints on stdout. The level
defaults to WARNING; ``drop --log-level debug`` traces every store call.

Setup:
    >>> from drop.logging import configure_logging, LogConfig, LogLevel
    >>> configure_logging(LogConfig(level=LogLevel.DEBUG))

Tagging everything logged while a database is open:
    >>> from drop.logging import bound_context, get_logger
    >>> with bound_context(backend="gdbm", database="/home/me/.drop.dbm"):
    ...     get_logger(__name__).debug("Listing keys")
"""
import structlog

from .config import (
    LogConfig,
    LogFormat,
    LogLevel,
    configure_logging,
    ensure_configured,
    is_configured,
)
from .context import (
    bind_context,
    bound_context,
    clear_context,
    get_context,
    unbind_context,
)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, applying the default configuration on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("Fetched entry", key="github")
    """
    ensure_configured()
    return structlog.get_logger(name)


__all__ = [
    "LogConfig",
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "is_configured",
    "get_logger",
    "bind_context",
    "bound_context",
    "unbind_context",
    "clear_context",
    "get_context",
]
