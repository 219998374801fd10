"""Raw references to running perpetual servers.

``ActorRef`` is the protocol; ``LocalActorRef`` delivers in-process via a
callback owned by the server.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

type ActorId = str


class ActorRef[M](Protocol):
    """Typed handle to a server, used for fire-and-forget delivery."""

    @property
    def id(self) -> ActorId: ...

    def tell(self, msg: M) -> None: ...


@dataclass(frozen=True)
class LocalActorRef[M]:
    """In-process server reference that delivers via direct callback.

    Two references are equal when they point to the same server.
    """

    id: ActorId
    _deliver: Callable[[Any], None]

    def tell(self, msg: M) -> None:
        self._deliver(msg)

    def __reduce__(self) -> Any:
        msg = "LocalActorRef cannot be pickled: perpetual servers are in-process only"
        raise RuntimeError(msg)
