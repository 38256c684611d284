"""
Tests for handler composition across scopes.

Tests cover:
- compose()/also() tagging and validation
- Synchronous and asynchronous merges
- Cancellation at the merge boundary
- Scope overlays that wire composed handlers
"""
import asyncio
import inspect

import pytest

from boundstate import (
    CancellationSignal,
    ConfigurationError,
    Scope,
    also,
    bound_scope,
    compose,
    compose_handlers,
    compose_scope,
    is_composable,
)


def add(a, b):
    return a + b


class TestCompose:
    """Test tagging."""

    def test_returns_same_handler_tagged(self):
        def handler():
            return 1

        assert compose(handler, add) is handler
        assert is_composable(handler)

    def test_also_is_an_alias(self):
        assert also is compose

    def test_untagged_handler_is_not_composable(self):
        assert not is_composable(lambda: None)
        assert not is_composable("value")

    @pytest.mark.parametrize("handler, merge", [
        ("not callable", add),
        (lambda: None, "not callable"),
        (None, None),
    ])
    def test_non_callables_are_rejected(self, handler, merge):
        with pytest.raises(ConfigurationError):
            compose(handler, merge)


class TestComposedHandler:
    """Test the synthesised handler."""

    def test_merges_local_then_inherited(self):
        composed = compose_handlers(lambda: 3, lambda: 2, add)
        assert composed() == 5

    def test_arguments_passed_to_both(self):
        seen = []
        local = lambda *args, **kwargs: seen.append(("local", args, kwargs))
        inherited = lambda *args, **kwargs: seen.append(("inherited", args, kwargs))

        compose_handlers(local, inherited, lambda a, b: None)(1, key="v")

        assert seen == [("local", (1,), {"key": "v"}), ("inherited", (1,), {"key": "v"})]

    def test_cancel_in_merge_keeps_local_result(self):
        def cancelling_merge(a, b):
            raise CancellationSignal()

        composed = compose_handlers(lambda: 3, lambda: 2, cancelling_merge)
        assert composed() == 3

    def test_cancel_in_inherited_keeps_local_result(self):
        def inherited():
            raise CancellationSignal()

        composed = compose_handlers(lambda: 3, inherited, add)
        assert composed() == 3

    def test_cancel_in_local_yields_none(self):
        calls = []

        def local():
            raise CancellationSignal()

        composed = compose_handlers(local, lambda: calls.append("inherited"), add)

        assert composed() is None
        assert calls == []

    def test_other_exceptions_propagate(self):
        def inherited():
            raise KeyError("missing")

        composed = compose_handlers(lambda: 3, inherited, add)
        with pytest.raises(KeyError):
            composed()

    def test_pending_local_coroutine_closed_when_inherited_fails(self):
        started = []

        async def save():
            return 3

        def local():
            coroutine = save()
            started.append(coroutine)
            return coroutine

        def inherited():
            raise KeyError("missing")

        composed = compose_handlers(local, inherited, add)
        with pytest.raises(KeyError):
            composed()

        assert inspect.getcoroutinestate(started[0]) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_pending_inherited_coroutine_closed_when_local_fails(self):
        started = []

        async def local():
            raise ValueError("invalid")

        async def audit():
            return 2

        def inherited():
            coroutine = audit()
            started.append(coroutine)
            return coroutine

        composed = compose_handlers(local, inherited, add)
        with pytest.raises(ValueError):
            await composed()

        assert inspect.getcoroutinestate(started[0]) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_async_results_are_awaited_before_merge(self):
        async def local():
            await asyncio.sleep(0)
            return 3

        composed = compose_handlers(local, lambda: 2, add)
        assert await composed() == 5

    @pytest.mark.asyncio
    async def test_async_inherited_result(self):
        async def inherited():
            return 2

        composed = compose_handlers(lambda: 3, inherited, add)
        assert await composed() == 5

    @pytest.mark.asyncio
    async def test_async_cancel_keeps_resolved_local_result(self):
        async def local():
            return 3

        async def inherited():
            raise CancellationSignal()

        composed = compose_handlers(local, inherited, add)
        assert await composed() == 3


class TestScopeComposition:
    """Test composition wired through scopes."""

    def test_composable_local_merges_with_parent(self):
        parent = Scope(local={"on_save": lambda doc: 2})
        child = compose_scope(parent, {"on_save": compose(lambda doc: 3, add)})

        assert child["on_save"]({}) == 5

    def test_untagged_local_shadows_parent(self):
        parent = Scope(local={"on_save": lambda doc: 2})
        child = parent.child(on_save=lambda doc: 3)

        assert child["on_save"]({}) == 3

    def test_composable_without_inherited_function_is_kept(self):
        local = compose(lambda: 3, add)
        child = compose_scope(Scope(local={"on_save": "not a function"}), {"on_save": local})

        assert child["on_save"] is local

    def test_default_merge_keeps_local_but_runs_both(self):
        calls = []
        with bound_scope(on_save=lambda: calls.append("outer") or "outer"):
            with bound_scope(on_save=compose(lambda: calls.append("inner") or "inner")) as scope:
                result = scope["on_save"]()

        assert result == "inner"
        assert calls == ["inner", "outer"]

    def test_three_levels_compose(self):
        with bound_scope(total=lambda: 1):
            with bound_scope(total=compose(lambda: 10, add)):
                with bound_scope(total=compose(lambda: 100, add)) as scope:
                    assert scope["total"]() == 111

    def test_cancel_does_not_escape_scope_handler(self):
        def veto(a, b):
            raise CancellationSignal()

        with bound_scope(on_close=lambda: "closed"):
            with bound_scope(on_close=compose(lambda: "kept open", veto)) as scope:
                assert scope["on_close"]() == "kept open"

    def test_parent_handler_unchanged_for_siblings(self):
        outer_handler = lambda: 2
        with bound_scope(on_save=outer_handler) as outer:
            with bound_scope(on_save=compose(lambda: 3, add)):
                pass
            with bound_scope() as sibling:
                assert sibling["on_save"] is outer_handler
            assert outer["on_save"] is outer_handler
