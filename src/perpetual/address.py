"""Addresses a handle can point at.

A server can be addressed by its raw reference, by a plain string
registered in the owning system's local registry, by a ``GlobalName``
shared across every system in the process, or by a ``ViaName`` resolved
through any ``NameRegistry``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from perpetual.ref import LocalActorRef
from perpetual.registry import NameRegistry, global_registry


@dataclass(frozen=True)
class GlobalName:
    """A name in the process-wide ``global_registry``.

    Examples
    --------
    >>> await system.start(lambda: 0, lambda n: n, name=GlobalName("ticks"))
    """

    name: Any

    @property
    def registry(self) -> NameRegistry:
        return global_registry


@dataclass(frozen=True)
class ViaName:
    """A name resolved through a caller-supplied registry."""

    registry: NameRegistry
    name: Any


type Name = str | GlobalName | ViaName
type Address = LocalActorRef[Any] | Name


def registry_and_key(name: Name, local: NameRegistry) -> tuple[NameRegistry, Any]:
    """Return the registry responsible for ``name`` and the key to use in it."""
    match name:
        case str():
            return local, name
        case GlobalName(name=key) | ViaName(name=key):
            return name.registry, key
        case _:
            msg = f"Not a valid server name: {name!r}"
            raise TypeError(msg)
