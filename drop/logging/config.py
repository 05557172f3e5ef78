"""Logging configuration for drop.

stdout belongs to the command (values, listings). Every log record goes to
stderr, and optionally to a rotating file, through a single structlog
processor chain bridged onto the stdlib root logger.
"""
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import structlog

from .processors import add_logger_name, inject_context

EventFilter = Callable[[dict], Optional[dict]]


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_int(self) -> int:
        return logging.getLevelName(self.value)


class LogFormat(str, Enum):
    PLAIN = "plain"  # key=value lines for a terminal
    JSON = "json"    # one object per line, for log files and tooling


@dataclass
class LogConfig:
    """How drop logs.

    Attributes:
        level: Threshold for the root logger and its handlers.
        format: Renderer used by every handler.
        log_file: Also append records to this file, rotating at max_bytes.
        max_bytes: Rotation size of log_file (default 1MB).
        backup_count: Rotated files kept beside log_file.
        module_levels: Thresholds for individual loggers, e.g.
            {"drop.storage": LogLevel.DEBUG}.
        filters: Callables receiving each event dict. Returning None drops
            the event; returning a dict passes it on.
    """
    level: LogLevel = LogLevel.WARNING
    format: LogFormat = LogFormat.PLAIN
    log_file: Optional[Path] = None
    max_bytes: int = 1024 * 1024
    backup_count: int = 3
    module_levels: dict[str, LogLevel] = field(default_factory=dict)
    filters: list[EventFilter] = field(default_factory=list)


class _StderrHandler(logging.StreamHandler):
    """Stream handler bound to whatever sys.stderr is at emit time.

    Output stays correct when stderr is swapped after configuration,
    e.g. by a test runner capturing a CLI invocation.
    """

    def __init__(self) -> None:
        logging.Handler.__init__(self)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


# Handler types owned by drop; anything else on the root logger is left alone
_OWN_HANDLERS = (_StderrHandler, logging.handlers.RotatingFileHandler)

_configured: bool = False


def _as_processor(event_filter: EventFilter):
    def processor(logger, method_name, event_dict):
        kept = event_filter(event_dict)
        if kept is None:
            raise structlog.DropEvent
        return kept
    return processor


def _shared_processors(config: LogConfig) -> list:
    """Processors applied to structlog and plain stdlib records alike."""
    chain: list = [
        structlog.contextvars.merge_contextvars,
        inject_context,
        add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    chain.extend(_as_processor(f) for f in config.filters)
    return chain


def _renderer(log_format: LogFormat):
    if log_format is LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=False,
        exception_formatter=structlog.dev.plain_traceback,
    )


def _build_handlers(config: LogConfig, formatter: logging.Formatter) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [_StderrHandler()]
    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.log_file,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
            )
        )
    for handler in handlers:
        handler.setLevel(config.level.to_int())
        handler.setFormatter(formatter)
    return handlers


def _install_handlers(handlers: list[logging.Handler], level: int) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for old in [h for h in root.handlers if isinstance(h, _OWN_HANDLERS)]:
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call repeatedly: drop's own handlers are replaced, handlers
    installed by others stay in place.

    Example:
        >>> from drop.logging import configure_logging, LogConfig, LogFormat
        >>> configure_logging(LogConfig(format=LogFormat.JSON))
    """
    global _configured

    config = config or LogConfig()
    shared = _shared_processors(config)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config.format),
        ],
    )
    _install_handlers(_build_handlers(config, formatter), config.level.to_int())

    for module_name, level in config.module_levels.items():
        logging.getLogger(module_name).setLevel(level.to_int())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def is_configured() -> bool:
    return _configured


def ensure_configured() -> None:
    """Apply the default configuration unless configure_logging() already ran."""
    if not _configured:
        configure_logging()
