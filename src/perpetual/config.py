"""TOML-based configuration for perpetual actor systems.

Provides ``load_config`` / ``discover_config`` for loading
``perpetual.toml`` and frozen dataclasses for mailbox, timeout and advance
settings, with per-server overrides matched by registered name.

Example ``perpetual.toml``::

    [system]
    name = "my-app"

    [defaults.timeouts]
    call = 5.0
    stop = "infinity"

    [defaults.advance]
    idle_interval = 0.0

    [actors."poller-.*".advance]
    idle_interval = 0.5
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

__all__ = [
    "ActorConfig",
    "AdvanceConfig",
    "MailboxConfig",
    "MailboxStrategy",
    "PerpetualConfig",
    "ResolvedActorConfig",
    "TimeoutConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILENAME = "perpetual.toml"

type MailboxStrategy = Literal["drop_new", "drop_oldest"]


@dataclass(frozen=True)
class MailboxConfig:
    """Mailbox settings applied to every server unless overridden.

    Parameters
    ----------
    capacity : int | None
        Maximum number of queued requests. ``None`` for unbounded.
    strategy : MailboxStrategy
        Overflow strategy: ``"drop_new"`` or ``"drop_oldest"``. Stop
        requests are never dropped.

    Examples
    --------
    >>> MailboxConfig(capacity=500, strategy="drop_oldest")
    MailboxConfig(capacity=500, strategy='drop_oldest')
    """

    capacity: int | None = None
    strategy: MailboxStrategy = "drop_new"


@dataclass(frozen=True)
class TimeoutConfig:
    """Default timeouts in seconds. ``None`` waits forever.

    Parameters
    ----------
    call : float | None
        Reply timeout of get, get_and_update, update and code_swap.
    start : float | None
        Time the init function may take.
    stop : float | None
        Time ``stop`` waits for termination.

    Examples
    --------
    >>> TimeoutConfig()
    TimeoutConfig(call=5.0, start=None, stop=None)
    """

    call: float | None = 5.0
    start: float | None = None
    stop: float | None = None


@dataclass(frozen=True)
class AdvanceConfig:
    """Pacing of the advance loop.

    Parameters
    ----------
    idle_interval : float
        Seconds to sleep after each step. ``0`` advances as fast as the
        event loop allows while still letting callers in.
    """

    idle_interval: float = 0.0


@dataclass(frozen=True)
class ActorConfig:
    """Per-server override matched by registered name.

    Parameters
    ----------
    pattern : re.Pattern[str]
        Regex matched against server names via ``fullmatch``.
    mailbox_overrides : dict[str, Any]
        Fields to override in ``MailboxConfig``.
    timeout_overrides : dict[str, Any]
        Fields to override in ``TimeoutConfig``.
    advance_overrides : dict[str, Any]
        Fields to override in ``AdvanceConfig``.
    """

    pattern: re.Pattern[str]
    mailbox_overrides: dict[str, Any] = field(default_factory=dict)
    timeout_overrides: dict[str, Any] = field(default_factory=dict)
    advance_overrides: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedActorConfig:
    """Effective configuration for one server."""

    mailbox: MailboxConfig
    timeouts: TimeoutConfig
    advance: AdvanceConfig


@dataclass(frozen=True)
class PerpetualConfig:
    """Top-level configuration of an ``ActorSystem``.

    Examples
    --------
    >>> config = PerpetualConfig(system_name="my-app")
    >>> config.resolve_actor("counter").timeouts.call
    5.0
    """

    system_name: str = "perpetual"
    defaults_mailbox: MailboxConfig = field(default_factory=MailboxConfig)
    defaults_timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    defaults_advance: AdvanceConfig = field(default_factory=AdvanceConfig)
    actors: tuple[ActorConfig, ...] = ()

    def resolve_actor(self, name: str | None) -> ResolvedActorConfig:
        """Merge the first override matching ``name`` on top of the defaults.

        Unnamed servers get the defaults.
        """
        mailbox_overrides: dict[str, Any] = {}
        timeout_overrides: dict[str, Any] = {}
        advance_overrides: dict[str, Any] = {}

        if name is not None:
            for actor in self.actors:
                if actor.pattern.fullmatch(name):
                    mailbox_overrides = actor.mailbox_overrides
                    timeout_overrides = actor.timeout_overrides
                    advance_overrides = actor.advance_overrides
                    break

        return ResolvedActorConfig(
            mailbox=MailboxConfig(**{**asdict(self.defaults_mailbox), **mailbox_overrides}),
            timeouts=TimeoutConfig(**{**asdict(self.defaults_timeouts), **timeout_overrides}),
            advance=AdvanceConfig(**{**asdict(self.defaults_advance), **advance_overrides}),
        )


def _timeouts(raw: dict[str, Any]) -> dict[str, Any]:
    # TOML has no null: "infinity" stands for "wait forever"
    return {key: None if value == "infinity" else value for key, value in raw.items()}


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``perpetual.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> PerpetualConfig:
    """Load a ``PerpetualConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``perpetual.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return PerpetualConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    system_name = raw.get("system", {}).get("name", "perpetual")

    defaults_raw = raw.get("defaults", {})
    defaults_mailbox = MailboxConfig(**defaults_raw.get("mailbox", {}))
    defaults_timeouts = TimeoutConfig(**_timeouts(defaults_raw.get("timeouts", {})))
    defaults_advance = AdvanceConfig(**defaults_raw.get("advance", {}))

    actors: list[ActorConfig] = []
    for name, overrides in raw.get("actors", {}).items():
        pattern = (
            re.compile(f"^{name}$")
            if re.fullmatch(r"[\w-]+", name)
            else re.compile(name)
        )
        actors.append(
            ActorConfig(
                pattern=pattern,
                mailbox_overrides=overrides.get("mailbox", {}),
                timeout_overrides=_timeouts(overrides.get("timeouts", {})),
                advance_overrides=overrides.get("advance", {}),
            )
        )

    return PerpetualConfig(
        system_name=system_name,
        defaults_mailbox=defaults_mailbox,
        defaults_timeouts=defaults_timeouts,
        defaults_advance=defaults_advance,
        actors=tuple(actors),
    )
