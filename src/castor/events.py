"""Request/response events emitted around each provider round trip.

Sinks are fire-and-forget: a failing sink is logged and never affects the
generation call. Set ``CASTOR_EVENTS_LOG=1`` to log every event at DEBUG.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestSent:
    """Emitted immediately before a payload is posted."""

    provider: str
    mode: str
    step: int
    path: str
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class ResponseReceived:
    """Emitted after a successful post, before the response is interpreted."""

    provider: str
    mode: str
    step: int
    status_code: int
    body: Any
    duration_s: float
    timestamp: float = field(default_factory=time.time)


Event = RequestSent | ResponseReceived


@runtime_checkable
class EventSink(Protocol):
    """Duck-typed protocol for event consumers."""

    def emit(self, event: Event) -> None: ...  # noqa: D102


class RecordingSink:
    """Keep events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> list[Event]:
        return [e for e in self.events if isinstance(e, kind)]


class LoggingSink:
    """Log a one-line summary of each event."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or log

    def emit(self, event: Event) -> None:
        if isinstance(event, RequestSent):
            self.logger.debug(
                "%s %s step=%d -> %s (%d input item(s))",
                event.provider,
                event.mode,
                event.step,
                event.path,
                len(event.payload.get("input") or ()),
            )
        else:
            self.logger.debug(
                "%s %s step=%d <- status=%d in %.3fs",
                event.provider,
                event.mode,
                event.step,
                event.status_code,
                event.duration_s,
            )


def default_sinks() -> tuple[EventSink, ...]:
    if os.getenv("CASTOR_EVENTS_LOG") == "1":
        return (LoggingSink(),)
    return ()


class EventDispatcher:
    """Fan events out to sinks, isolating sink failures."""

    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self.sinks = tuple(sinks)

    def emit(self, event: Event) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception:
                log.warning(
                    "Event sink %s failed on %s",
                    type(sink).__name__,
                    type(event).__name__,
                    exc_info=True,
                )
