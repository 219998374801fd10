from __future__ import annotations

import asyncio
import re

import pytest

from perpetual import (
    ActorConfig,
    ActorStarted,
    ActorStopped,
    ActorSystem,
    AlreadyRegistered,
    ChildSpec,
    Deferred,
    GlobalName,
    LocalRegistry,
    Mailbox,
    MailboxConfig,
    NoProcess,
    PerpetualConfig,
    ServerStatus,
    StartupError,
    TimeoutConfig,
    ViaName,
    global_registry,
)

from conftest import identity, increment, slow_identity


async def test_context_manager_shuts_down_servers() -> None:
    async with ActorSystem("scoped") as system:
        stopped: list[ActorStopped] = []
        system.event_stream.subscribe(ActorStopped, stopped.append)
        first = await system.start(lambda: 0, increment, name="a")
        second = await system.start(lambda: 0, identity)

    assert sorted(event.ref.id for event in stopped) == sorted(
        [first.address.id, second.address.id]
    )
    assert all(event.reason == "shutdown" for event in stopped)
    assert system.servers() == []


async def test_start_publishes_started_event(system: ActorSystem) -> None:
    started: list[ActorStarted] = []
    system.event_stream.subscribe(ActorStarted, started.append)

    ref = await system.start(lambda: 0, identity, name="observed")

    assert started == [ActorStarted(ref=ref.address, name="observed")]


async def test_duplicate_name_is_rejected(system: ActorSystem) -> None:
    first = await system.start(lambda: 1, identity, name="unique")

    with pytest.raises(AlreadyRegistered) as exc_info:
        await system.start(lambda: 2, identity, name="unique")

    assert exc_info.value.name == "unique"
    assert exc_info.value.ref == first.address
    assert await system.ref("unique").get(identity) == 1
    assert len(system.servers()) == 1


async def test_failed_start_leaves_name_free(system: ActorSystem) -> None:
    def broken() -> int:
        raise RuntimeError("no database")

    with pytest.raises(StartupError):
        await system.start(broken, identity, name="db")

    assert system.whereis("db") is None
    ref = await system.start(lambda: 0, identity, name="db")
    assert system.whereis("db") == ref.address


async def test_start_timeout_from_config() -> None:
    async def slow_init() -> int:
        await asyncio.sleep(5)
        return 0

    config = PerpetualConfig(defaults_timeouts=TimeoutConfig(start=0.05))
    async with ActorSystem(config=config) as system:
        with pytest.raises(StartupError) as exc_info:
            await system.start(slow_init, identity)

    assert exc_info.value.reason == "timeout"


async def test_global_name_is_shared_across_systems() -> None:
    async with ActorSystem("one") as one, ActorSystem("two") as two:
        await one.start(lambda: "from one", identity, name=GlobalName("shared"))

        assert global_registry.whereis("shared") is not None
        assert await two.ref(GlobalName("shared")).get(identity) == "from one"

        with pytest.raises(AlreadyRegistered):
            await two.start(lambda: "from two", identity, name=GlobalName("shared"))

    assert global_registry.whereis("shared") is None


async def test_wait_on_global_name_from_another_system() -> None:
    async with ActorSystem("owner") as owner, ActorSystem("observer") as observer:
        await owner.start(lambda: 0, identity, name=GlobalName("watched"))
        assert observer.server(GlobalName("watched")) is not None

        waiter = asyncio.create_task(observer.ref(GlobalName("watched")).wait())
        await asyncio.sleep(0)
        await owner.ref(GlobalName("watched")).stop()

        assert await asyncio.wait_for(waiter, 1.0) == "normal"
        assert observer.server(GlobalName("watched")) is None


async def test_kill_global_name_from_another_system() -> None:
    async with ActorSystem("owner") as owner, ActorSystem("observer") as observer:
        ref = await owner.start(lambda: 0, slow_identity, name=GlobalName("doomed"))
        await asyncio.sleep(0)

        spec = ChildSpec(id="doomed", start=Deferred(identity), shutdown="brutal_kill")
        await spec.terminate_child(observer.ref(GlobalName("doomed")))

        assert owner.server(ref.address) is None
        assert global_registry.whereis("doomed") is None


async def test_via_name_uses_given_registry(system: ActorSystem) -> None:
    registry = LocalRegistry("custom")
    name = ViaName(registry, ("room", 42))

    ref = await system.start(dict, identity, name=name)

    assert registry.whereis(("room", 42)) == ref.address
    assert await system.ref(name).get(len) == 0

    await ref.stop()
    assert len(registry) == 0


async def test_invalid_name_type(system: ActorSystem) -> None:
    with pytest.raises(TypeError):
        await system.start(dict, identity, name=42)  # type: ignore[arg-type]


async def test_describe(system: ActorSystem) -> None:
    await system.start(dict, Deferred("copy:copy"), name="store")

    info = system.describe("store")
    assert info is not None
    assert info.name == "store"
    assert info.status is ServerStatus.running
    assert (info.initial_call.module, info.initial_call.name, info.initial_call.arity) == (
        "builtins",
        "dict",
        0,
    )
    assert (info.next_call.module, info.next_call.name, info.next_call.arity) == (
        "copy",
        "copy",
        1,
    )
    assert system.describe("missing") is None


async def test_stopped_servers_are_forgotten(system: ActorSystem) -> None:
    ref = await system.start(lambda: 0, identity)
    assert system.servers() == [ref.address]

    await ref.stop()
    assert system.servers() == []
    assert system.server(ref.address) is None


async def test_shutdown_kills_unresponsive_servers() -> None:
    system = ActorSystem()
    stopped: list[ActorStopped] = []
    system.event_stream.subscribe(ActorStopped, stopped.append)

    async def stuck(state: int) -> int:
        await asyncio.sleep(60)
        return state

    await system.start(lambda: 0, stuck)
    await asyncio.sleep(0)
    await system.shutdown(timeout=0.05)

    assert [event.reason for event in stopped] == ["killed"]


async def test_shutdown_with_full_mailbox() -> None:
    system = ActorSystem()
    stopped: list[ActorStopped] = []
    system.event_stream.subscribe(ActorStopped, stopped.append)

    ref = await system.start(lambda: 0, slow_identity, mailbox=Mailbox(capacity=1))
    await asyncio.sleep(0)
    ref.cast(increment)
    await system.shutdown(timeout=2.0)

    assert [event.reason for event in stopped] == ["shutdown"]
    assert system.server(ref.address) is None


async def test_shutdown_tolerates_crashed_servers() -> None:
    system = ActorSystem()
    ref = await system.start(lambda: 0, identity)

    ref.cast(lambda n: 1 / n)
    await system.shutdown()

    with pytest.raises(NoProcess):
        await ref.get(identity)


async def test_config_overrides_by_name() -> None:
    config = PerpetualConfig(
        defaults_timeouts=TimeoutConfig(call=2.0),
        actors=(
            ActorConfig(
                pattern=re.compile(r"worker-\d+"),
                mailbox_overrides={"capacity": 8, "strategy": "drop_oldest"},
                timeout_overrides={"call": 0.5},
                advance_overrides={"idle_interval": 0.01},
            ),
        ),
    )
    async with ActorSystem(config=config) as system:
        worker = await system.start(lambda: 0, increment, name="worker-1")
        plain = await system.start(lambda: 0, increment, name="other")

        assert worker.call_timeout == 0.5
        assert system.ref("worker-1").call_timeout == 0.5
        assert plain.call_timeout == 2.0

        server = system.server("worker-1")
        assert server is not None
        assert server.mailbox.capacity == 8
        assert system.server("other").mailbox.capacity is None


async def test_explicit_mailbox_config() -> None:
    config = PerpetualConfig(defaults_mailbox=MailboxConfig(capacity=3))
    async with ActorSystem("bounded", config=config) as system:
        await system.start(lambda: 0, identity, name="small")
        assert system.server("small").mailbox.capacity == 3
