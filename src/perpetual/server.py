"""The perpetual server: one task, one state, one message at a time.

The loop takes a queued message if there is one and handles it; when the
mailbox is empty at that instant it advances the state with the next
function instead. Either way it then yields to the event loop, so callers
can enqueue requests between two steps. Queued requests always win over
advancing, and nothing ever runs concurrently against the state.

Caller-supplied functions run inside the server task. A synchronous
function that blocks (I/O, long computations) blocks the whole event loop
for its duration; coroutine functions only block this server.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, TYPE_CHECKING

from perpetual.errors import (
    ActorExited,
    AlreadyRegistered,
    BadReturnValue,
    CodeSwapError,
    MailboxFull,
    NoProcess,
    OperationFault,
    StartupError,
)
from perpetual.events import ActorStarted, ActorStopped, DeadLetter
from perpetual.invocation import InitialCall, Invocation, describe, invoke
from perpetual.mailbox import Mailbox
from perpetual.messages import (
    Cast,
    CodeSwap,
    Get,
    GetAndUpdate,
    PerpetualMsg,
    Stop,
    Update,
    reply_future,
)
from perpetual.ref import ActorId, LocalActorRef

if TYPE_CHECKING:
    from perpetual.events import EventStream
    from perpetual.registry import NameRegistry

NORMAL = "normal"
SHUTDOWN = "shutdown"
KILLED = "killed"


def is_normal_reason(reason: Any) -> bool:
    """Return whether ``reason`` is a regular, non-error termination.

    Examples
    --------
    >>> is_normal_reason("normal"), is_normal_reason(("shutdown", "deploy"))
    (True, True)
    >>> is_normal_reason(RuntimeError("boom"))
    False
    """
    match reason:
        case "normal" | "shutdown" | ("shutdown", _):
            return True
        case _:
            return False


_live: dict[ActorId, PerpetualServer[Any]] = {}


def live_server(actor_id: ActorId) -> PerpetualServer[Any] | None:
    """Return the running server with ``actor_id``, whichever system started it."""
    return _live.get(actor_id)


class ServerStatus(Enum):
    starting = auto()
    running = auto()
    terminated = auto()


@dataclass(frozen=True)
class ServerInfo:
    """Snapshot of a server's bookkeeping, for introspection."""

    id: ActorId
    name: Any
    status: ServerStatus
    initial_call: InitialCall
    next_call: InitialCall
    mailbox_size: int
    reason: Any = None


def _resolve(future: asyncio.Future[Any], value: Any) -> None:
    if not future.done():
        future.set_result(value)


def _fail(future: asyncio.Future[Any], exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)


def _operation(msg: PerpetualMsg | None) -> str:
    match msg:
        case None:
            return "advance"
        case Get():
            return "get"
        case GetAndUpdate():
            return "get_and_update"
        case Update():
            return "update"
        case Cast():
            return "cast"
        case _:
            return type(msg).__name__.lower()


class PerpetualServer[S]:
    """Runtime engine of one perpetual server.

    Owns the mailbox, the state and the loop task. Created and started by
    ``ActorSystem.start``; client code talks to it through a
    ``PerpetualRef``.

    Parameters
    ----------
    init_fun : Invocation
        Called once, with no extra arguments, to build the initial state.
    next_fun : Invocation
        Called with the current state whenever the mailbox is empty.
    id : ActorId
        Unique identifier, used for logging and the raw reference.
    name : Any
        Registered name, or ``None``.
    registration : tuple[NameRegistry, Any] | None
        Registry and key the name is registered under.
    mailbox : Mailbox[PerpetualMsg] | None
        Mailbox to use; unbounded by default.
    idle_interval : float
        Seconds to sleep between two loop steps. ``0`` only yields.
    event_stream : EventStream | None
        Where lifecycle events and dead letters are published.
    """

    def __init__(
        self,
        init_fun: Invocation,
        next_fun: Invocation,
        *,
        id: ActorId,
        name: Any = None,
        registration: tuple[NameRegistry, Any] | None = None,
        mailbox: Mailbox[PerpetualMsg] | None = None,
        idle_interval: float = 0.0,
        event_stream: EventStream | None = None,
    ) -> None:
        self._init_fun = init_fun
        self._next_fun = next_fun
        self._id = id
        self._name = name
        self._registration = registration
        self._mailbox: Mailbox[PerpetualMsg] = mailbox if mailbox is not None else Mailbox()
        self._idle_interval = idle_interval
        self._event_stream = event_stream
        self._logger = logging.getLogger(f"perpetual.server.{id}")

        self._initial_call = describe(init_fun, 0)
        self._next_call = describe(next_fun, 1)
        self._status = ServerStatus.starting
        self._state: S | None = None
        self._reason: Any = None
        self._loop_task: asyncio.Task[None] | None = None
        self._current: PerpetualMsg | None = None
        self._terminated: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._ref: LocalActorRef[PerpetualMsg] = LocalActorRef(id=id, _deliver=self._deliver)

    @property
    def id(self) -> ActorId:
        return self._id

    @property
    def name(self) -> Any:
        return self._name

    @property
    def ref(self) -> LocalActorRef[PerpetualMsg]:
        return self._ref

    @property
    def status(self) -> ServerStatus:
        return self._status

    @property
    def is_alive(self) -> bool:
        return self._status is not ServerStatus.terminated

    @property
    def reason(self) -> Any:
        """Termination reason, ``None`` while the server is alive."""
        return self._reason

    @property
    def initial_call(self) -> InitialCall:
        return self._initial_call

    @property
    def next_call(self) -> InitialCall:
        return self._next_call

    @property
    def mailbox(self) -> Mailbox[PerpetualMsg]:
        return self._mailbox

    def info(self) -> ServerInfo:
        return ServerInfo(
            id=self._id,
            name=self._name,
            status=self._status,
            initial_call=self._initial_call,
            next_call=self._next_call,
            mailbox_size=self._mailbox.size(),
            reason=self._reason,
        )

    def _address(self) -> Any:
        return self._name if self._name is not None else self._ref

    # Lifecycle

    async def start(self, timeout: float | None = None) -> None:
        """Run the init function, register the name and start the loop.

        Raises
        ------
        AlreadyRegistered
            If the name is taken, checked before and after init.
        StartupError
            If init raised or did not finish within ``timeout`` seconds.
        """
        if self._registration is not None:
            registry, key = self._registration
            existing = registry.whereis(key)
            if existing is not None:
                self._status = ServerStatus.terminated
                raise AlreadyRegistered(self._name, existing)

        try:
            async with asyncio.timeout(timeout) as deadline:
                self._state = await invoke(self._init_fun)
        except TimeoutError as exc:
            self._status = ServerStatus.terminated
            if deadline.expired():
                self._logger.warning("Init timed out after %ss", timeout)
                raise StartupError("timeout") from None
            raise StartupError(exc) from exc
        except Exception as exc:
            self._status = ServerStatus.terminated
            self._logger.warning("Init failed: %r", exc)
            raise StartupError(exc) from exc

        if self._registration is not None:
            registry, key = self._registration
            try:
                registry.register(key, self._ref)
            except AlreadyRegistered:
                self._status = ServerStatus.terminated
                self._state = None
                raise

        self._status = ServerStatus.running
        _live[self._id] = self
        self._loop_task = asyncio.get_running_loop().create_task(
            self._run_loop(), name=f"perpetual:{self._id}"
        )
        self._publish(ActorStarted(ref=self._ref, name=self._name))
        self._logger.info("Started")

    async def stop(self, reason: Any = SHUTDOWN) -> None:
        """Ask the server to terminate and wait until it has."""
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._deliver(Stop(reason=reason, reply_to=future))
        await future

    async def kill(self) -> None:
        """Cancel the loop task without waiting for the current step to end."""
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        self._terminate(KILLED)

    async def wait(self) -> Any:
        """Wait for termination and return the reason."""
        return await asyncio.shield(self._terminated)

    # Delivery

    def _deliver(self, msg: PerpetualMsg) -> None:
        if self._status is ServerStatus.terminated:
            self._reject(msg, NoProcess(self._address()))
            return

        dropped = self._mailbox.put(msg, pinned=isinstance(msg, Stop))
        if dropped is not None:
            self._logger.warning("Mailbox full, dropping %s", type(dropped).__name__)
            self._reject(dropped, MailboxFull(f"mailbox of {self._address()!r} is full"))

    def _reject(self, msg: PerpetualMsg, error: BaseException) -> None:
        future = reply_future(msg)
        if future is None:
            self._publish(DeadLetter(message=msg, address=self._address()))
        else:
            _fail(future, error)

    # Loop

    async def _run_loop(self) -> None:
        try:
            while self._status is ServerStatus.running:
                self._current = self._mailbox.try_get()
                try:
                    if self._current is None:
                        self._state = await invoke(self._next_fun, self._state)
                    else:
                        self._logger.debug("Handling %s", type(self._current).__name__)
                        await self._handle(self._current)
                except Exception as exc:
                    self._fault(exc)
                    break

                self._current = None
                await asyncio.sleep(self._idle_interval)
        except asyncio.CancelledError:
            self._terminate(KILLED, current=self._current)
            raise
        except BaseException as exc:
            self._fault(exc)
            raise

    def _fault(self, exc: BaseException) -> None:
        fault = OperationFault(_operation(self._current), exc)
        fault.__cause__ = exc
        self._terminate(fault, current=self._current)

    async def _handle(self, msg: PerpetualMsg) -> None:
        match msg:
            case Get(fun=fun, reply_to=reply_to):
                _resolve(reply_to, await invoke(fun, self._state))

            case GetAndUpdate(fun=fun, reply_to=reply_to):
                match await invoke(fun, self._state):
                    case tuple((reply, next_state)):
                        self._state = next_state
                        _resolve(reply_to, reply)
                    case other:
                        self._terminate(BadReturnValue(other), current=msg)

            case Update(fun=fun, reply_to=reply_to):
                self._state = await invoke(fun, self._state)
                _resolve(reply_to, None)

            case Cast(fun=fun):
                self._state = await invoke(fun, self._state)

            case Stop(reason=reason, reply_to=reply_to):
                self._terminate(reason)
                _resolve(reply_to, None)

            case CodeSwap(fun=fun, next_fun=next_fun, reply_to=reply_to):
                try:
                    next_state = await invoke(fun, self._state)
                except Exception as exc:
                    self._logger.warning("Code swap failed, keeping state: %r", exc)
                    _fail(reply_to, CodeSwapError(exc))
                    return

                self._state = next_state
                if next_fun is not None:
                    self._next_fun = next_fun
                    self._next_call = describe(next_fun, 1)
                self._logger.info("Code swapped")
                _resolve(reply_to, None)

    # Termination

    def _terminate(self, reason: Any, *, current: PerpetualMsg | None = None) -> None:
        if self._status is ServerStatus.terminated:
            return

        self._status = ServerStatus.terminated
        self._reason = reason
        self._state = None
        _live.pop(self._id, None)

        if self._registration is not None:
            registry, key = self._registration
            registry.unregister(key, self._ref)

        exited = ActorExited(self._address(), reason)
        if current is not None and not isinstance(current, Stop):
            future = reply_future(current)
            if future is not None:
                _fail(future, exited)
        for pending in self._mailbox.drain():
            self._reject(pending, exited)

        if is_normal_reason(reason):
            self._logger.info("Stopped: %r", reason)
        elif isinstance(reason, OperationFault):
            self._logger.error("Terminating: %s", reason, exc_info=reason.exception)
        else:
            self._logger.error("Terminating: %r", reason)

        self._publish(ActorStopped(ref=self._ref, reason=reason, name=self._name))
        if not self._terminated.done():
            self._terminated.set_result(reason)

    def _publish(self, event: object) -> None:
        if self._event_stream is not None:
            self._event_stream.publish(event)
