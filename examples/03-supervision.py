"""Supervision: restarting a perpetual server from its child spec.

Demonstrates:
- Subclassing Perpetual to get a child spec with overrides
- Watching ActorStopped to learn why a server terminated
- A minimal one-for-one restart loop driven by should_restart()

Run with:
    uv run python examples/03-supervision.py
"""

import asyncio
import logging

from perpetual import ActorStopped, ActorSystem, Perpetual, Restart


class Ticker(Perpetual, restart=Restart.transient, shutdown=1.0):
    @classmethod
    async def start_link(cls, system, start_at):
        return await system.start(
            lambda: start_at, lambda n: n + 1, name="ticker", idle_interval=0.001
        )


async def supervise(system, spec, restarts):
    stopped = asyncio.Queue()
    system.event_stream.subscribe(ActorStopped, stopped.put_nowait)

    ref = await spec.start_child(system)
    for _ in range(restarts):
        event = await stopped.get()
        if event.ref != ref.address:
            continue
        if not spec.should_restart(event.reason):
            print(f"Not restarting after {event.reason!r}")
            return
        print(f"Restarting after {event.reason}")
        ref = await spec.start_child(system)


async def main():
    logging.basicConfig(level=logging.INFO)

    async with ActorSystem() as system:
        spec = Ticker.child_spec(0)
        supervisor = asyncio.create_task(supervise(system, spec, restarts=2))
        await asyncio.sleep(0.05)

        ticker = system.ref("ticker")
        print(f"ticks: {await ticker.get(lambda n: n)}")

        # a crash in caller-supplied logic terminates the server
        ticker.cast(lambda n: n / 0)
        await asyncio.sleep(0.05)
        print(f"ticks after restart: {await ticker.get(lambda n: n)}")

        # a normal stop is not restarted for transient children
        await ticker.stop()
        await supervisor


if __name__ == "__main__":
    asyncio.run(main())
