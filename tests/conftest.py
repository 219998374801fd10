"""Shared fixtures and state functions for perpetual tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from perpetual import ActorStopped, ActorSystem


# State functions, referenced directly and through Deferred


def identity(state: Any) -> Any:
    return state


def increment(count: int) -> int:
    return count + 1


def put(mapping: dict[str, Any], key: str, value: Any) -> dict[str, Any]:
    return {**mapping, key: value}


def pop(mapping: dict[str, Any], key: str) -> tuple[Any, dict[str, Any]]:
    rest = dict(mapping)
    value = rest.pop(key, None)
    return value, rest


async def slow_identity(state: Any) -> Any:
    await asyncio.sleep(0.5)
    return state


@pytest.fixture
async def system() -> AsyncIterator[ActorSystem]:
    async with ActorSystem("test") as system:
        yield system


@pytest.fixture
def stopped(system: ActorSystem) -> list[ActorStopped]:
    """Collect every ``ActorStopped`` event published by ``system``."""
    events: list[ActorStopped] = []
    system.event_stream.subscribe(ActorStopped, events.append)
    return events
