"""Key-value store: a perpetual server with an identity next function.

Demonstrates:
- A plain agent: the next function leaves the state untouched
- Deferred calls with import paths, re-resolved on every call
- code_swap() to migrate the state shape at runtime
- Startup and call errors

Run with:
    uv run python examples/02-key-value.py
"""

import asyncio

from perpetual import ActorExited, ActorSystem, BadReturnValue, CallTimeout, Deferred


def put(store: dict, key: str, value: object) -> dict:
    return {**store, key: value}


def pop(store: dict, key: str) -> tuple[object, dict]:
    rest = dict(store)
    return rest.pop(key, None), rest


def to_versioned(store: dict) -> dict:
    return {key: (1, value) for key, value in store.items()}


async def slow_read(store: dict) -> dict:
    await asyncio.sleep(1)
    return store


async def main():
    async with ActorSystem() as system:
        store = await system.start(dict, Deferred("copy:copy"), name="store")

        await store.update(put, "hello", "world")
        print(f"hello = {await store.get(dict.get, 'hello')}")
        print(f"keys = {await store.get(Deferred('builtins:sorted'))}")

        await store.code_swap(to_versioned)
        print(f"after migration = {await store.get(lambda s: s)}")

        print(f"popped = {await store.get_and_update(pop, 'hello')}")

        try:
            await store.get(slow_read, timeout=0.1)
        except CallTimeout as e:
            print(f"Timed out, server still running: {e}")

        # get_and_update() must return a pair; anything else is fatal
        try:
            await store.get_and_update(lambda s: "oops")
        except ActorExited as e:
            assert isinstance(e.reason, BadReturnValue)
            print(f"Server terminated: {e.reason}")

        print(f"store running: {system.whereis('store') is not None}")


if __name__ == "__main__":
    asyncio.run(main())
