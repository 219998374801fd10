"""Lifecycle events and the system-wide event stream.

Supervisors and monitoring code subscribe to ``ActorStopped`` to learn
why a server terminated; ``DeadLetter`` reports casts nobody received.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from perpetual.ref import ActorRef

logger = logging.getLogger("perpetual.events")


@dataclass(frozen=True)
class ActorStarted:
    ref: ActorRef[Any]
    name: Any = None


@dataclass(frozen=True)
class ActorStopped:
    ref: ActorRef[Any]
    reason: Any
    name: Any = None


@dataclass(frozen=True)
class DeadLetter:
    message: Any
    address: Any


type Handler = Callable[[Any], None]


class EventStream:
    """Synchronous publish/subscribe keyed by event type.

    Handlers run inline in the publisher, in subscription order. A handler
    that raises is logged and does not affect the others.

    Examples
    --------
    >>> stream = EventStream()
    >>> stopped = []
    >>> stream.subscribe(ActorStopped, stopped.append)
    >>> stream.publish(ActorStopped(ref=ref, reason="normal"))
    >>> len(stopped)
    1
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, tuple[Handler, ...]] = {}

    def subscribe(self, event_type: type, handler: Handler) -> None:
        current = self._subscribers.get(event_type, ())
        self._subscribers[event_type] = (*current, handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        current = self._subscribers.get(event_type, ())
        self._subscribers[event_type] = tuple(h for h in current if h != handler)

    def publish(self, event: object) -> None:
        for handler in self._subscribers.get(type(event), ()):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", type(event).__name__)
