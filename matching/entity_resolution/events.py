"""
Resolution event sinks.

The resolver reports every stage (preconditions, accept, arbitration,
fallback, absorbed failures) to an injected sink. Sinks are fire-and-forget:
a sink that raises never changes the resolution outcome.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Severity of a resolution event."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    NONE = "none"


_LOG_LEVELS = {
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.NONE: logging.DEBUG,
}


class EventSink:
    """Receives resolution events. The base class discards them."""

    def emit(self, message: str, severity: Severity) -> None:
        pass


class NullSink(EventSink):
    """Explicit no-op sink, used when the caller supplies none."""


class LoggingSink(EventSink):
    """Forwards events to a standard-library logger."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self.target = target or logging.getLogger("matching.events")

    def emit(self, message: str, severity: Severity) -> None:
        self.target.log(_LOG_LEVELS[severity], message)


class CallbackSink(EventSink):
    """Adapts a plain ``callback(message, severity)`` function."""

    def __init__(self, callback: Callable[[str, Severity], None]):
        self.callback = callback

    def emit(self, message: str, severity: Severity) -> None:
        self.callback(message, severity)


SinkLike = Union[EventSink, Callable[[str, Severity], None], None]


def as_sink(sink: SinkLike) -> EventSink:
    """Coerce None, a callback or a sink into an EventSink."""
    if sink is None:
        return NullSink()
    if isinstance(sink, EventSink):
        return sink
    return CallbackSink(sink)


def emit_safely(sink: EventSink, message: str, severity: Severity) -> None:
    """Emit an event; a failing sink is logged and otherwise ignored."""
    try:
        sink.emit(message, severity)
    except Exception as e:
        logger.debug(f"Event sink {type(sink).__name__} failed: {type(e).__name__}: {e}")
