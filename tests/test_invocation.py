from __future__ import annotations

import pytest

from perpetual.invocation import Deferred, InitialCall, describe, invoke, resolve

from conftest import put


async def test_invoke_closure_with_state() -> None:
    assert await invoke(lambda n: n + 1, 41) == 42


async def test_invoke_init_closure_without_arguments() -> None:
    assert await invoke(lambda: "initial") == "initial"


async def test_invoke_deferred_prepends_state() -> None:
    result = await invoke(Deferred(put, ("hello", "world")), {})
    assert result == {"hello": "world"}


async def test_invoke_deferred_import_path() -> None:
    assert await invoke(Deferred("operator:add", (1,)), 41) == 42


async def test_invoke_deferred_nested_qualname() -> None:
    assert await invoke(Deferred("builtins:str.upper"), "abc") == "ABC"


async def test_invoke_deferred_kwargs() -> None:
    result = await invoke(Deferred(sorted, kwargs={"reverse": True}), [1, 3, 2])
    assert result == [3, 2, 1]


async def test_invoke_awaits_coroutine_functions() -> None:
    async def double(n: int) -> int:
        return n * 2

    assert await invoke(double, 21) == 42
    assert await invoke(Deferred(double), 4) == 8


async def test_invoke_propagates_errors() -> None:
    with pytest.raises(ZeroDivisionError):
        await invoke(lambda n: n / 0, 1)


def test_resolve_returns_callables_unchanged() -> None:
    assert resolve(len) is len


def test_resolve_import_path() -> None:
    import operator

    assert resolve("operator:itemgetter") is operator.itemgetter


@pytest.mark.parametrize("target", ["operator", "operator:", ":add", "operator.add"])
def test_resolve_rejects_malformed_paths(target: str) -> None:
    with pytest.raises(ValueError, match="module:qualname"):
        resolve(target)


def test_resolve_missing_attribute() -> None:
    with pytest.raises(AttributeError):
        resolve("operator:does_not_exist")


def test_resolve_missing_module() -> None:
    with pytest.raises(ImportError):
        resolve("perpetual_missing_module:fn")


def test_describe_callable() -> None:
    assert describe(dict, 0) == InitialCall("builtins", "dict", 0)


def test_describe_deferred_counts_fixed_arguments() -> None:
    call = describe(Deferred(put, ("key", "value")), 1)
    assert call == InitialCall(put.__module__, "put", 3)


def test_describe_deferred_import_path() -> None:
    assert describe(Deferred("copy:copy"), 1) == InitialCall("copy", "copy", 1)


def test_describe_lambda() -> None:
    call = describe(lambda n: n, 1)
    assert call.module == __name__
    assert call.name.endswith("<lambda>")
    assert call.arity == 1


def test_deferred_equality() -> None:
    assert Deferred(put, ("a", 1)) == Deferred(put, ("a", 1))
    assert Deferred(put, ("a", 1)) != Deferred(put, ("a", 2))


def test_deferred_is_hashable_with_kwargs() -> None:
    with_kwargs = Deferred(put, ("a",), {"value": 1})

    assert hash(with_kwargs) == hash(Deferred(put, ("a",), {"value": 1}))
    assert len({with_kwargs, Deferred(put, ("a",), {"value": 1})}) == 1
    assert with_kwargs != Deferred(put, ("a",), {"value": 2})
