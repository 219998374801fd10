"""Counter: The basics of perpetual.

Demonstrates:
- A server that counts up on its own whenever it is idle
- get() / update() / get_and_update() from other coroutines
- cast() (fire-and-forget) vs awaited calls
- Addressing a server by name

Run with:
    uv run python examples/01-counter.py
"""

import asyncio
import operator

from perpetual import ActorSystem


async def main():
    async with ActorSystem() as system:
        counter = await system.start(lambda: 0, lambda n: n + 1, name="counter")

        first = await counter.get(lambda n: n)
        await asyncio.sleep(0.01)
        later = await system.ref("counter").get(lambda n: n)
        print(f"Advanced on its own: {first} -> {later}")

        # update() waits for the new state to be committed
        await counter.update(lambda n: -1_000_000)
        print(f"After reset: {await counter.get(lambda n: n)}")

        # get_and_update() returns the first element, keeps the second
        previous = await counter.get_and_update(lambda n: (n, 0))
        print(f"Swapped out {previous}")

        # cast() - fire and forget; extra arguments become a deferred call
        counter.cast(operator.sub, 100)
        print(f"After cast: {await counter.get(lambda n: n)}")

        await counter.stop()


if __name__ == "__main__":
    asyncio.run(main())
