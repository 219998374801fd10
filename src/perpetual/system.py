"""Actor system: starts, tracks and shuts down perpetual servers.

Provides ``ActorSystem``, the runtime container that owns the servers
started through it, the local name registry, the event stream and the
configuration.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import uuid4

from perpetual.address import Address, GlobalName, Name, ViaName, registry_and_key
from perpetual.client import DEFAULT, PerpetualRef, Timeout
from perpetual.config import PerpetualConfig
from perpetual.errors import ActorExited
from perpetual.events import ActorStopped, DeadLetter, EventStream
from perpetual.invocation import Invocation
from perpetual.mailbox import Mailbox, MailboxOverflowStrategy
from perpetual.messages import PerpetualMsg
from perpetual.ref import ActorId, ActorRef, LocalActorRef
from perpetual.registry import LocalRegistry
from perpetual.server import SHUTDOWN, PerpetualServer, ServerInfo, live_server


def _config_key(name: Name | None) -> str | None:
    match name:
        case str():
            return name
        case GlobalName(name=str() as key) | ViaName(name=str() as key):
            return key
        case _:
            return None


class ActorSystem:
    """Main entry point for starting and managing perpetual servers.

    Use as an async context manager for automatic shutdown.

    Parameters
    ----------
    name : str | None
        System name, used in logger names. Defaults to the configured
        ``system_name``.
    config : PerpetualConfig | None
        Defaults and per-server overrides.

    Examples
    --------
    >>> async with ActorSystem() as system:
    ...     counter = await system.start(lambda: 0, lambda n: n + 1, name="counter")
    ...     await system.ref("counter").get(lambda n: n)
    """

    def __init__(self, name: str | None = None, *, config: PerpetualConfig | None = None) -> None:
        self._config = config or PerpetualConfig()
        self._name = name or self._config.system_name
        self._registry = LocalRegistry(self._name)
        self._event_stream = EventStream()
        self._servers: dict[ActorId, PerpetualServer[Any]] = {}
        self._logger = logging.getLogger(f"perpetual.system.{self._name}")
        self._event_stream.subscribe(ActorStopped, self._forget)

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> PerpetualConfig:
        return self._config

    @property
    def registry(self) -> LocalRegistry:
        return self._registry

    @property
    def event_stream(self) -> EventStream:
        return self._event_stream

    async def __aenter__(self) -> ActorSystem:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.shutdown()

    async def start(
        self,
        init_fun: Invocation,
        next_fun: Invocation,
        *,
        name: Name | None = None,
        timeout: Timeout = DEFAULT,
        mailbox: Mailbox[PerpetualMsg] | None = None,
        idle_interval: float | None = None,
    ) -> PerpetualRef:
        """Start a perpetual server.

        ``init_fun`` runs before this method returns and its result is the
        initial state. From then on ``next_fun`` is applied to the state
        whenever the server has no request to process.

        Parameters
        ----------
        init_fun : Invocation
            Builds the initial state; called with no extra arguments.
        next_fun : Invocation
            Computes the next state from the current one.
        name : Name | None
            Register the server under this name: a ``str`` in this
            system's registry, a ``GlobalName`` or a ``ViaName``.
        timeout : float | None
            Seconds the init function may take. Defaults to the configured
            start timeout.
        mailbox : Mailbox | None
            Mailbox to use instead of the configured one.
        idle_interval : float | None
            Seconds to sleep between two loop steps instead of the
            configured value.

        Returns
        -------
        PerpetualRef
            Handle bound to the new server's raw reference.

        Raises
        ------
        StartupError
            If ``init_fun`` raised or timed out.
        AlreadyRegistered
            If ``name`` is already taken.

        Examples
        --------
        >>> ref = await system.start(dict, Deferred("copy:copy"))
        """
        resolved = self._config.resolve_actor(_config_key(name))
        if mailbox is None:
            mailbox = Mailbox(
                capacity=resolved.mailbox.capacity,
                overflow=MailboxOverflowStrategy[resolved.mailbox.strategy],
            )
        if idle_interval is None:
            idle_interval = resolved.advance.idle_interval
        if timeout is DEFAULT:
            timeout = resolved.timeouts.start

        server: PerpetualServer[Any] = PerpetualServer(
            init_fun,
            next_fun,
            id=f"{self._name}/{uuid4().hex[:8]}",
            name=name,
            registration=registry_and_key(name, self._registry) if name is not None else None,
            mailbox=mailbox,
            idle_interval=idle_interval,
            event_stream=self._event_stream,
        )
        await server.start(timeout=timeout)
        self._servers[server.id] = server
        self._logger.info("Started server %s (name=%r)", server.id, name)

        return PerpetualRef(
            address=server.ref,
            system=self,
            call_timeout=resolved.timeouts.call,
            stop_timeout=resolved.timeouts.stop,
        )

    def ref(self, address: Address) -> PerpetualRef:
        """Build a handle for ``address`` with the configured timeouts."""
        key = None if isinstance(address, LocalActorRef) else _config_key(address)
        resolved = self._config.resolve_actor(key)
        return PerpetualRef(
            address=address,
            system=self,
            call_timeout=resolved.timeouts.call,
            stop_timeout=resolved.timeouts.stop,
        )

    def whereis(self, address: Address) -> ActorRef[Any] | None:
        """Resolve ``address`` to a raw reference, or ``None`` if the name is free."""
        if isinstance(address, LocalActorRef):
            return address
        registry, key = registry_and_key(address, self._registry)
        return registry.whereis(key)

    def server(self, address: Address) -> PerpetualServer[Any] | None:
        """Return the live server at ``address``, if any.

        Global and via names may resolve to a server started by another
        system in this process; it is returned as well.
        """
        ref = self.whereis(address)
        if ref is None:
            return None
        return live_server(ref.id)

    def describe(self, address: Address) -> ServerInfo | None:
        """Return introspection data for the server at ``address``."""
        server = self.server(address)
        return server.info() if server is not None else None

    def servers(self) -> list[LocalActorRef[PerpetualMsg]]:
        """Return raw references to every live server of this system."""
        return [server.ref for server in self._servers.values()]

    def dead_letter(self, message: Any, address: Any) -> None:
        self._logger.debug("Dead letter to %r: %s", address, type(message).__name__)
        self._event_stream.publish(DeadLetter(message=message, address=address))

    def _forget(self, event: ActorStopped) -> None:
        self._servers.pop(event.ref.id, None)

    async def shutdown(self, timeout: float | None = None) -> None:
        """Stop every server with reason ``"shutdown"``.

        Servers that do not terminate within ``timeout`` seconds are
        killed.
        """
        self._logger.info("Shutting down (%d servers)", len(self._servers))
        for server in list(self._servers.values()):
            if not server.is_alive:
                continue
            try:
                async with asyncio.timeout(timeout):
                    await server.stop(SHUTDOWN)
            except TimeoutError:
                self._logger.warning("Server %s did not stop in %ss, killing it", server.id, timeout)
                await server.kill()
            except ActorExited as exc:
                self._logger.warning("Server %s exited before shutdown: %r", server.id, exc.reason)
        self._servers.clear()
