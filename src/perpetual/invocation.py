"""Closures and deferred calls, invoked through one dispatcher.

Every function a perpetual server runs (init, next, and the per-request
operations) is an ``Invocation``: either a plain callable, or a
``Deferred`` pairing a target with fixed arguments. The values the server
supplies (the current state, or nothing for init) are prepended to the
fixed arguments.

A ``Deferred`` target may be a ``"package.module:qualified.name"`` string.
It is resolved on every invocation, so a reloaded module is picked up by
running servers without restarting them.
"""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

__all__ = ["Deferred", "InitialCall", "Invocation", "describe", "invoke", "resolve"]


@dataclass(frozen=True)
class Deferred:
    """A function reference plus fixed arguments.

    Parameters
    ----------
    target : Callable[..., Any] | str
        A callable, or an import path of the form ``"module:qualname"``.
    args : tuple[Any, ...]
        Arguments appended after the values supplied at invocation time.
    kwargs : dict[str, Any]
        Keyword arguments passed on every invocation. Compared for
        equality but left out of the hash, so a deferred call is hashable
        whenever its target and ``args`` are.

    Examples
    --------
    >>> await invoke(Deferred("operator:add", (1,)), 41)
    42
    """

    target: Callable[..., Any] | str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict, hash=False)


type Invocation = Callable[..., Any] | Deferred


@dataclass(frozen=True)
class InitialCall:
    """Module, name and arity of an invocation, for introspection."""

    module: str
    name: str
    arity: int


def resolve(target: Callable[..., Any] | str) -> Callable[..., Any]:
    """Return the callable a deferred target refers to.

    Raises
    ------
    ValueError
        If a string target is not of the form ``"module:qualname"``.
    ImportError, AttributeError
        If the module or attribute does not exist.
    """
    if not isinstance(target, str):
        return target

    module_name, sep, qualname = target.partition(":")
    if not sep or not module_name or not qualname:
        msg = f"Deferred target must look like 'module:qualname', got {target!r}"
        raise ValueError(msg)

    obj: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj


async def invoke(fun: Invocation, *extra: Any) -> Any:
    """Call ``fun`` with ``extra`` prepended to its fixed arguments.

    Awaitable results are awaited, so both plain and coroutine functions
    are accepted.

    Parameters
    ----------
    fun : Invocation
        A callable or a ``Deferred``.
    *extra : Any
        Leading arguments, usually the current state.

    Returns
    -------
    Any
        The function's result.

    Examples
    --------
    >>> await invoke(lambda n: n + 1, 1)
    2
    >>> await invoke(Deferred(max, (10,)), 3)
    10
    """
    match fun:
        case Deferred(target=target, args=args, kwargs=kwargs):
            result = resolve(target)(*extra, *args, **kwargs)
        case _:
            result = fun(*extra)

    if inspect.isawaitable(result):
        result = await result
    return result


def describe(fun: Invocation, extra_arity: int) -> InitialCall:
    """Build the ``InitialCall`` descriptor of ``fun``.

    ``extra_arity`` is the number of arguments the server supplies
    (0 for init, 1 for next); a ``Deferred`` adds its fixed arguments.
    """
    match fun:
        case Deferred(target=str() as target, args=args):
            module, _, name = target.partition(":")
            return InitialCall(module, name, extra_arity + len(args))
        case Deferred(target=target, args=args):
            arity = extra_arity + len(args)
        case _:
            target = fun
            arity = extra_arity

    module = getattr(target, "__module__", None) or type(target).__module__
    name = getattr(target, "__qualname__", None) or type(target).__qualname__
    return InitialCall(module, name, arity)
