"""Name registries used to address servers by logical name.

``NameRegistry`` is the protocol any naming collaborator implements.
``LocalRegistry`` is the in-memory implementation: every ``ActorSystem``
owns one for plain string names, and the module-level ``global_registry``
is shared by all systems in the process.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from perpetual.errors import AlreadyRegistered
from perpetual.ref import ActorRef

logger = logging.getLogger("perpetual.registry")


class NameRegistry(Protocol):
    """Protocol for resolving logical names to server references.

    Examples
    --------
    >>> class DictRegistry:
    ...     def __init__(self): self.names = {}
    ...     def register(self, name, ref): self.names[name] = ref
    ...     def unregister(self, name, ref=None): self.names.pop(name, None)
    ...     def whereis(self, name): return self.names.get(name)
    """

    def register(self, name: Any, ref: ActorRef[Any]) -> None: ...

    def unregister(self, name: Any, ref: ActorRef[Any] | None = None) -> None: ...

    def whereis(self, name: Any) -> ActorRef[Any] | None: ...


class LocalRegistry:
    """In-memory name registry.

    Parameters
    ----------
    label : str
        Used in log messages only.

    Examples
    --------
    >>> registry = LocalRegistry()
    >>> registry.register("counter", ref)
    >>> registry.whereis("counter") == ref
    True
    """

    def __init__(self, label: str = "local") -> None:
        self._label = label
        self._names: dict[Any, ActorRef[Any]] = {}

    def register(self, name: Any, ref: ActorRef[Any]) -> None:
        """Bind ``name`` to ``ref``.

        Raises
        ------
        AlreadyRegistered
            If ``name`` is bound to another reference.
        """
        existing = self._names.get(name)
        if existing is not None:
            raise AlreadyRegistered(name, existing)
        self._names[name] = ref
        logger.debug("Registered %r in %s registry", name, self._label)

    def unregister(self, name: Any, ref: ActorRef[Any] | None = None) -> None:
        """Release ``name``.

        When ``ref`` is given the name is only released if it is still
        bound to that reference, so a late cleanup never evicts a newer
        server registered under the same name.
        """
        existing = self._names.get(name)
        if existing is None or (ref is not None and existing != ref):
            return
        del self._names[name]
        logger.debug("Unregistered %r from %s registry", name, self._label)

    def whereis(self, name: Any) -> ActorRef[Any] | None:
        """Return the reference bound to ``name``, or ``None``."""
        return self._names.get(name)

    def names(self) -> list[Any]:
        """Return every registered name."""
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)


global_registry = LocalRegistry("global")
