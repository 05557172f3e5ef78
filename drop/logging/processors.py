"""structlog processors used by every drop logger."""
from typing import Any

from .context import get_context

EventDict = dict[str, Any]


def inject_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Merge values bound with bind_context(); explicit event values win."""
    return {**get_context(), **event_dict}


def add_logger_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Name the emitting logger under 'logger'.

    Records from plain stdlib loggers arrive with their LogRecord attached.
    """
    source = event_dict.get("_record") or logger
    name = getattr(source, "name", None)
    if name is not None:
        event_dict["logger"] = name
    return event_dict
