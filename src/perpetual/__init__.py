"""perpetual: actors that keep advancing their own state.

A perpetual server owns one value. Other code reads and updates it
through a handle, and whenever the server has nothing else to do it
applies a next function to move the value forward.

    from perpetual import ActorSystem

    async def main():
        async with ActorSystem() as system:
            counter = await system.start(lambda: 0, lambda n: n + 1, name="counter")
            first = await counter.get(lambda n: n)
            await asyncio.sleep(0.01)
            later = await system.ref("counter").get(lambda n: n)
            assert later > first
"""

from perpetual.address import Address, GlobalName, Name, ViaName
from perpetual.client import PerpetualRef
from perpetual.config import (
    ActorConfig,
    AdvanceConfig,
    MailboxConfig,
    PerpetualConfig,
    ResolvedActorConfig,
    TimeoutConfig,
    discover_config,
    load_config,
)
from perpetual.errors import (
    ActorExited,
    AlreadyRegistered,
    BadReturnValue,
    CallTimeout,
    CodeSwapError,
    MailboxFull,
    NoProcess,
    OperationFault,
    PerpetualError,
    StartupError,
)
from perpetual.events import ActorStarted, ActorStopped, DeadLetter, EventStream
from perpetual.invocation import Deferred, InitialCall, Invocation, invoke
from perpetual.mailbox import Mailbox, MailboxOverflowStrategy
from perpetual.ref import ActorRef, LocalActorRef
from perpetual.registry import LocalRegistry, NameRegistry, global_registry
from perpetual.server import PerpetualServer, ServerInfo, ServerStatus, is_normal_reason
from perpetual.supervision import ChildSpec, Perpetual, Restart
from perpetual.system import ActorSystem

__all__ = [
    # System
    "ActorSystem",
    "PerpetualServer",
    "ServerInfo",
    "ServerStatus",
    "is_normal_reason",
    # Client
    "PerpetualRef",
    "Deferred",
    "InitialCall",
    "Invocation",
    "invoke",
    # Addressing
    "ActorRef",
    "LocalActorRef",
    "Address",
    "Name",
    "GlobalName",
    "ViaName",
    "NameRegistry",
    "LocalRegistry",
    "global_registry",
    # Mailbox
    "Mailbox",
    "MailboxOverflowStrategy",
    # Supervision
    "ChildSpec",
    "Perpetual",
    "Restart",
    # Events
    "ActorStarted",
    "ActorStopped",
    "DeadLetter",
    "EventStream",
    # Errors
    "PerpetualError",
    "StartupError",
    "AlreadyRegistered",
    "CallTimeout",
    "ActorExited",
    "NoProcess",
    "MailboxFull",
    "BadReturnValue",
    "OperationFault",
    "CodeSwapError",
    # Config
    "PerpetualConfig",
    "ActorConfig",
    "AdvanceConfig",
    "MailboxConfig",
    "TimeoutConfig",
    "ResolvedActorConfig",
    "discover_config",
    "load_config",
]

__version__ = "0.1.0"
