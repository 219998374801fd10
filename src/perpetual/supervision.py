"""Glue for external supervisors.

Supervision itself is not part of ``perpetual``. This module provides what
a supervisor needs to manage perpetual servers: a ``ChildSpec`` saying how
to start, when to restart and how to shut down a server, and the
``Perpetual`` base class that derives child specs for user modules.

Examples
--------
>>> class Counter(Perpetual, restart=Restart.transient, shutdown=10.0):
...     @classmethod
...     async def start_link(cls, system, initial_count):
...         return await system.start(
...             lambda: initial_count, lambda n: n + 1, name="counter"
...         )
>>> spec = Counter.child_spec(0)
>>> ref = await spec.start_child(system)
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, ClassVar, Literal, TYPE_CHECKING

from perpetual.errors import ActorExited, CallTimeout
from perpetual.invocation import Deferred, invoke
from perpetual.server import is_normal_reason

if TYPE_CHECKING:
    from perpetual.client import PerpetualRef
    from perpetual.system import ActorSystem


class Restart(Enum):
    """When a terminated child should be restarted.

    ``permanent`` always, ``temporary`` never, ``transient`` only after an
    abnormal termination.
    """

    permanent = auto()
    transient = auto()
    temporary = auto()


type Shutdown = float | Literal["brutal_kill"] | None


@dataclass(frozen=True)
class ChildSpec:
    """How a supervisor starts, restarts and shuts down one server.

    Parameters
    ----------
    id : Any
        Stable identifier of the child within its supervisor.
    start : Deferred
        Start call; invoked with the ``ActorSystem`` prepended to its
        arguments and must return a ``PerpetualRef``.
    restart : Restart
        Restart policy.
    shutdown : float | "brutal_kill" | None
        Seconds to wait for a graceful stop before killing, ``"brutal_kill"``
        to kill right away, or ``None`` to wait forever.
    """

    id: Any
    start: Deferred
    restart: Restart = Restart.permanent
    shutdown: Shutdown = 5.0

    def with_overrides(self, **overrides: Any) -> ChildSpec:
        """Return a copy with the given fields replaced.

        Raises
        ------
        TypeError
            If an override does not name a ``ChildSpec`` field.
        """
        if isinstance(overrides.get("restart"), str):
            overrides["restart"] = Restart[overrides["restart"]]
        return dataclasses.replace(self, **overrides)

    async def start_child(self, system: ActorSystem) -> PerpetualRef:
        """Run the start call against ``system``."""
        return await invoke(self.start, system)

    def should_restart(self, reason: Any) -> bool:
        """Return whether a child that terminated with ``reason`` is restarted."""
        match self.restart:
            case Restart.permanent:
                return True
            case Restart.temporary:
                return False
            case Restart.transient:
                return not is_normal_reason(reason)

    async def terminate_child(self, ref: PerpetualRef) -> None:
        """Shut the child down according to ``shutdown``.

        A child that already terminated, for whatever reason, is left as is.
        """
        if self.shutdown == "brutal_kill":
            await self._kill(ref)
            return
        try:
            await ref.stop("shutdown", timeout=self.shutdown)
        except CallTimeout:
            await self._kill(ref)
        except ActorExited:
            return

    @staticmethod
    async def _kill(ref: PerpetualRef) -> None:
        server = ref.system.server(ref.address)
        if server is not None:
            await server.kill()


_CHILD_SPEC_FIELDS = frozenset(f.name for f in dataclasses.fields(ChildSpec))


class Perpetual:
    """Base class for modules that wrap a perpetual server.

    Subclasses implement ``start_link(system, arg)`` as a classmethod and
    get a ``child_spec(arg)`` whose ``id`` is the class itself. Keyword
    arguments in the class statement override child spec fields.

    On ``Perpetual`` itself, ``arg`` is a mapping of ``ActorSystem.start``
    keyword arguments.

    Examples
    --------
    >>> Perpetual.child_spec({"init_fun": dict, "next_fun": lambda s: s})
    ChildSpec(id=<class 'perpetual.supervision.Perpetual'>, ...)
    """

    child_spec_overrides: ClassVar[dict[str, Any]] = {}

    def __init_subclass__(cls, **overrides: Any) -> None:
        super().__init_subclass__()
        unknown = set(overrides) - _CHILD_SPEC_FIELDS
        if unknown:
            msg = f"Unknown child spec options for {cls.__name__}: {sorted(unknown)}"
            raise TypeError(msg)
        cls.child_spec_overrides = overrides

    @classmethod
    async def start_link(cls, system: ActorSystem, arg: Mapping[str, Any]) -> PerpetualRef:
        return await system.start(**arg)

    @classmethod
    def child_spec(cls, arg: Any) -> ChildSpec:
        default = ChildSpec(id=cls, start=Deferred(cls.start_link, (arg,)))
        return default.with_overrides(**cls.child_spec_overrides)
