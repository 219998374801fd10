"""Requests understood by a perpetual server.

Synchronous requests carry an ``asyncio.Future`` the server resolves with
the reply, or fails with the error the caller should see.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from perpetual.invocation import Invocation


@dataclass(frozen=True)
class Get:
    """Reply with ``fun(state)``; the state is unchanged."""

    fun: Invocation
    reply_to: asyncio.Future[Any] = field(repr=False)


@dataclass(frozen=True)
class GetAndUpdate:
    """``fun(state)`` returns ``(reply, new_state)``."""

    fun: Invocation
    reply_to: asyncio.Future[Any] = field(repr=False)


@dataclass(frozen=True)
class Update:
    """Replace the state with ``fun(state)`` and reply ``None``."""

    fun: Invocation
    reply_to: asyncio.Future[Any] = field(repr=False)


@dataclass(frozen=True)
class Cast:
    """Replace the state with ``fun(state)``; nobody waits for it."""

    fun: Invocation


@dataclass(frozen=True)
class Stop:
    """Terminate with ``reason``; ``reply_to`` resolves once terminated."""

    reason: Any
    reply_to: asyncio.Future[None] = field(repr=False)


@dataclass(frozen=True)
class CodeSwap:
    """Replace the state with ``fun(state)`` and optionally the next function."""

    fun: Invocation
    next_fun: Invocation | None
    reply_to: asyncio.Future[None] = field(repr=False)


type PerpetualMsg = Get | GetAndUpdate | Update | Cast | Stop | CodeSwap
type CallMsg = Get | GetAndUpdate | Update | Stop | CodeSwap


def reply_future(msg: PerpetualMsg) -> asyncio.Future[Any] | None:
    """Return the future a message expects to be resolved, if any."""
    match msg:
        case Cast():
            return None
        case _:
            return msg.reply_to
