"""Tests for ChangeRegistry."""
import pytest

from boundstate import ChangeRegistry


def test_notify_reaches_only_matching_key(recorder):
    other_calls = []
    ChangeRegistry.subscribe("x", recorder)
    ChangeRegistry.subscribe("y", lambda target, value: other_calls.append(value))

    target = {}
    ChangeRegistry.notify("x", target, 1)

    assert recorder.calls == [(target, 1)]
    assert other_calls == []


def test_subscribers_called_in_subscription_order():
    order = []
    ChangeRegistry.subscribe("name", lambda t, v: order.append("first"))
    ChangeRegistry.subscribe("name", lambda t, v: order.append("second"))

    ChangeRegistry.notify("name", {}, "Ada")

    assert order == ["first", "second"]


def test_list_created_lazily_and_dropped_when_empty(recorder):
    assert "email" not in ChangeRegistry.keys()

    unsubscribe = ChangeRegistry.subscribe("email", recorder)
    assert ChangeRegistry.subscriber_count("email") == 1

    unsubscribe()
    assert "email" not in ChangeRegistry.keys()


def test_unsubscribe_removes_by_identity():
    calls = []

    def first(target, value):
        calls.append("first")

    def second(target, value):
        calls.append("second")

    ChangeRegistry.subscribe("k", first)
    unsubscribe_second = ChangeRegistry.subscribe("k", second)
    ChangeRegistry.subscribe("k", second)

    unsubscribe_second()
    ChangeRegistry.notify("k", {}, None)

    assert calls == ["first", "second"]


def test_unsubscribe_during_notify_uses_snapshot():
    calls = []
    unsubscribers = []

    def first(target, value):
        calls.append("first")
        unsubscribers[1]()

    def second(target, value):
        calls.append("second")

    unsubscribers.append(ChangeRegistry.subscribe("k", first))
    unsubscribers.append(ChangeRegistry.subscribe("k", second))

    ChangeRegistry.notify("k", {}, 1)
    ChangeRegistry.notify("k", {}, 2)

    assert calls == ["first", "second", "first"]


def test_subscribe_during_notify_waits_for_next_round():
    calls = []

    def late(target, value):
        calls.append(("late", value))

    def first(target, value):
        calls.append(("first", value))
        ChangeRegistry.subscribe("k", late)

    ChangeRegistry.subscribe("k", first)
    ChangeRegistry.notify("k", {}, 1)

    assert calls == [("first", 1)]


def test_callback_failure_propagates_to_writer(recorder):
    def failing(target, value):
        raise RuntimeError("subscriber failed")

    ChangeRegistry.subscribe("k", failing)
    ChangeRegistry.subscribe("k", recorder)

    with pytest.raises(RuntimeError):
        ChangeRegistry.notify("k", {}, 1)
    assert recorder.calls == []


def test_same_field_name_on_different_roots_cross_notifies(recorder):
    ChangeRegistry.subscribe("name", recorder)
    first_root, second_root = {}, {}

    ChangeRegistry.notify("name", first_root, "a")
    ChangeRegistry.notify("name", second_root, "b")

    assert recorder.calls[0][0] is first_root
    assert recorder.calls[1][0] is second_root


def test_notify_without_subscribers_is_noop():
    ChangeRegistry.notify("nobody", {}, 1)
