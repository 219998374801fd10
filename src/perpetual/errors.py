"""Exception hierarchy for perpetual servers.

Startup and timeout errors are raised at the call site. Faults in
caller-supplied logic never escape the server task: they become the
server's termination reason and reach waiting callers wrapped in
``ActorExited``.
"""

from __future__ import annotations

from typing import Any


class PerpetualError(Exception):
    """Base class for every error raised by ``perpetual``."""


class StartupError(PerpetualError):
    """The init function failed or timed out; no server was left running.

    Parameters
    ----------
    reason : Any
        The exception raised by the init function, or ``"timeout"``.

    Examples
    --------
    >>> StartupError("timeout").reason
    'timeout'
    """

    def __init__(self, reason: Any) -> None:
        super().__init__(f"server failed to start: {reason!r}")
        self.reason = reason


class AlreadyRegistered(PerpetualError):
    """A server is already registered under the requested name.

    Parameters
    ----------
    name : Any
        The name that was requested.
    ref : Any
        Reference to the server currently holding the name.
    """

    def __init__(self, name: Any, ref: Any) -> None:
        super().__init__(f"name {name!r} is already registered to {ref!r}")
        self.name = name
        self.ref = ref


class CallTimeout(PerpetualError, TimeoutError):
    """A call did not get a reply in time.

    The request may still be processed by the server: treat the outcome
    as unknown.
    """

    def __init__(self, address: Any, timeout: float) -> None:
        super().__init__(f"call to {address!r} timed out after {timeout}s")
        self.address = address
        self.timeout = timeout


class ActorExited(PerpetualError):
    """The target server terminated before replying.

    Parameters
    ----------
    address : Any
        Address the request was sent to.
    reason : Any
        The server's termination reason.
    """

    def __init__(self, address: Any, reason: Any) -> None:
        super().__init__(f"{address!r} exited: {reason!r}")
        self.address = address
        self.reason = reason


class NoProcess(ActorExited):
    """Nothing is running at the given address."""

    def __init__(self, address: Any) -> None:
        super().__init__(address, "noproc")


class MailboxFull(PerpetualError):
    """The request was dropped by a bounded mailbox."""


class BadReturnValue(PerpetualError):
    """A get-and-update function returned something other than a pair.

    Used as the termination reason of the server that received it.
    """

    def __init__(self, value: Any) -> None:
        super().__init__(f"bad return value: {value!r}")
        self.value = value


class OperationFault(PerpetualError):
    """Caller-supplied logic raised inside the server.

    Used as the termination reason. The original exception is available
    as ``exception`` and is chained as ``__cause__``.
    """

    def __init__(self, operation: str, exception: BaseException) -> None:
        super().__init__(f"{operation} failed: {exception!r}")
        self.operation = operation
        self.exception = exception


class CodeSwapError(PerpetualError):
    """The code swap function raised; the server kept its previous state."""

    def __init__(self, exception: BaseException) -> None:
        super().__init__(f"code swap failed: {exception!r}")
        self.exception = exception
