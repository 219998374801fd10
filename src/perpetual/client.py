"""Client API: the handle other code uses to talk to a perpetual server.

Every operation turns into one request in the server's mailbox. ``get``,
``get_and_update``, ``update``, ``code_swap`` and ``stop`` await a reply
bounded by a timeout; ``cast`` returns immediately. The functions passed
to these operations run inside the server, so expensive work there delays
every other caller and the advance loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, TYPE_CHECKING

from perpetual.errors import CallTimeout, NoProcess
from perpetual.invocation import Deferred, Invocation
from perpetual.messages import Cast, CallMsg, CodeSwap, Get, GetAndUpdate, Stop, Update

if TYPE_CHECKING:
    from perpetual.address import Address
    from perpetual.ref import ActorRef
    from perpetual.system import ActorSystem


class _Default(Enum):
    token = auto()


DEFAULT = _Default.token

type Timeout = float | None | _Default


def _invocation(fun: Invocation, args: tuple[Any, ...]) -> Invocation:
    if not args:
        return fun
    if isinstance(fun, Deferred):
        msg = "Extra arguments cannot be combined with a Deferred; put them in Deferred.args"
        raise TypeError(msg)
    return Deferred(fun, args)


@dataclass(frozen=True)
class PerpetualRef:
    """Handle to a perpetual server.

    The address is resolved on every request: a handle built from a name
    reaches whichever server holds that name at the time, while a handle
    built from a raw reference sticks to one server.

    Positional arguments after ``fun`` turn the call into a deferred one:
    ``ref.get(dict.get, "key")`` runs ``dict.get(state, "key")``.

    Parameters
    ----------
    address : Address
        Raw reference or name of the server.
    system : ActorSystem
        System whose registry resolves plain string names.
    call_timeout : float | None
        Default reply timeout in seconds; ``None`` waits forever.
    stop_timeout : float | None
        Default timeout of ``stop``.

    Examples
    --------
    >>> counter = await system.start(lambda: 0, lambda n: n + 1, name="counter")
    >>> await counter.update(lambda n: -n)
    >>> value = await counter.get(lambda n: n)
    >>> counter.cast(operator.mul, 2)
    >>> await counter.stop()
    """

    address: Address
    system: ActorSystem = field(repr=False)
    call_timeout: float | None = 5.0
    stop_timeout: float | None = None

    def whereis(self) -> ActorRef[Any] | None:
        """Return the raw reference the address currently resolves to."""
        return self.system.whereis(self.address)

    async def get(self, fun: Invocation, /, *args: Any, timeout: Timeout = DEFAULT) -> Any:
        """Return ``fun(state)`` computed inside the server.

        Raises
        ------
        CallTimeout
            If no reply arrives within ``timeout`` seconds.
        ActorExited
            If the server terminated before replying, including when
            ``fun`` itself raised.
        NoProcess
            If nothing is running at the address.
        """
        invocation = _invocation(fun, args)
        return await self._call(lambda reply_to: Get(invocation, reply_to), timeout)

    async def get_and_update(
        self, fun: Invocation, /, *args: Any, timeout: Timeout = DEFAULT
    ) -> Any:
        """Run ``fun(state) -> (reply, new_state)`` atomically and return ``reply``.

        Any other return shape terminates the server with
        ``BadReturnValue``, and this call raises ``ActorExited``.
        """
        invocation = _invocation(fun, args)
        return await self._call(lambda reply_to: GetAndUpdate(invocation, reply_to), timeout)

    async def update(self, fun: Invocation, /, *args: Any, timeout: Timeout = DEFAULT) -> None:
        """Replace the state with ``fun(state)`` and wait for it to be applied."""
        invocation = _invocation(fun, args)
        await self._call(lambda reply_to: Update(invocation, reply_to), timeout)

    def cast(self, fun: Invocation, /, *args: Any) -> None:
        """Replace the state with ``fun(state)`` without waiting.

        Returns immediately whether or not a server is running at the
        address; undeliverable casts are published as ``DeadLetter``.
        """
        invocation = _invocation(fun, args)
        ref = self.whereis()
        if ref is None:
            self.system.dead_letter(Cast(invocation), self.address)
            return
        ref.tell(Cast(invocation))

    async def code_swap(
        self,
        fun: Invocation,
        /,
        *args: Any,
        next_fun: Invocation | None = None,
        timeout: Timeout = DEFAULT,
    ) -> None:
        """Transform the state with ``fun`` and optionally replace the next function.

        Raises
        ------
        CodeSwapError
            If ``fun`` raised. The server keeps running with its previous
            state and next function.
        """
        invocation = _invocation(fun, args)
        await self._call(lambda reply_to: CodeSwap(invocation, next_fun, reply_to), timeout)

    async def stop(self, reason: Any = "normal", timeout: Timeout = DEFAULT) -> None:
        """Stop the server with ``reason`` and wait until it has terminated.

        Raises
        ------
        CallTimeout
            If the server did not terminate within ``timeout`` seconds.
        ActorExited
            If the server terminated with another reason first.
        NoProcess
            If nothing is running at the address.
        """
        if timeout is DEFAULT:
            timeout = self.stop_timeout
        await self._call(lambda reply_to: Stop(reason, reply_to), timeout)

    async def wait(self, timeout: float | None = None) -> Any:
        """Wait for the server to terminate and return its reason.

        Raises
        ------
        NoProcess
            If nothing is running at the address.
        CallTimeout
            If the server is still running after ``timeout`` seconds.
        """
        server = self.system.server(self.address)
        if server is None:
            raise NoProcess(self.address)
        try:
            async with asyncio.timeout(timeout):
                return await server.wait()
        except TimeoutError:
            raise CallTimeout(self.address, timeout) from None

    async def _call(
        self,
        build: Callable[[asyncio.Future[Any]], CallMsg],
        timeout: Timeout,
    ) -> Any:
        if timeout is DEFAULT:
            timeout = self.call_timeout

        ref = self.whereis()
        if ref is None:
            raise NoProcess(self.address)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        ref.tell(build(future))
        try:
            async with asyncio.timeout(timeout) as deadline:
                return await future
        except TimeoutError:
            if deadline.expired():
                raise CallTimeout(self.address, timeout) from None
            raise
