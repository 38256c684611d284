"""Integration tests for boundevents + boundstate.

Tests actual usage patterns of a presentation layer and its collaborators:
a form scope with autosave, a validation collaborator keeping errors in a
channel's data bag, and render passes driven by refresh callbacks.
"""
import asyncio

import pytest

from boundevents import configure, create_channel, get_config, reset_config
from boundstate import FieldBinding, bind, bound_scope, compose, field_properties


def test_form_round_trip_with_nested_scopes():
    """A form scope that autosaves, with a section that tracks dirtiness."""
    document = {}
    saved = []
    dirty_fields = set()

    def autosave(target, value):
        saved.append(value)

    def mark_dirty(target, value):
        dirty_fields.add(id(target))

    with bound_scope(target=document, on_change=autosave):
        with bound_scope(on_change=compose(mark_dirty)):
            _, set_city = bind("shipping.address.city", "")
            set_city("Oslo")
        _, set_name = bind("customer.name", "")
        set_name("Ada")

    assert document == {
        "shipping": {"address": {"city": "Oslo"}},
        "customer": {"name": "Ada"},
    }
    assert saved == ["Oslo", "Ada"]
    assert dirty_fields == {id(document["shipping"]["address"])}


def test_render_pass_refreshes_dependent_consumers():
    """Two views bound to the same field re-render when either writes."""
    state = {"profile": {"name": "Ada"}}
    renders = {"header": 0, "editor": 0}

    header = FieldBinding("profile.name", target=state, refresh=lambda: renders.__setitem__("header", renders["header"] + 1))
    editor = FieldBinding("profile.name", target=state, refresh=lambda: renders.__setitem__("editor", renders["editor"] + 1))

    editor.handle_change("Grace")

    assert header.current == "Grace"
    assert renders == {"header": 1, "editor": 1}


@pytest.mark.asyncio
async def test_validation_collaborator_signals_status_once():
    """Errors live in a channel's data bag; status changes are debounced."""
    configure(debounce_seconds=0.01)
    validation = create_channel(name="validation")
    statuses = []

    def status_changed():
        statuses.append(bool(validation.data))

    def validate(props, settings):
        field_id = settings["field"]
        had_error = field_id in validation.data
        validation.data.pop(field_id, None)
        if props.get("required") and not settings["value"]:
            validation.data[field_id] = ValueError(f"{field_id} is required")
            props["error"] = True
            if not had_error:
                validation.raise_once()
        elif had_error:
            validation.raise_once()

    field_properties.on(validate)
    document = {}

    with bound_scope(target=document):
        hook = validation.use_event(status_changed)
        email = FieldBinding("contact.email")
        name = FieldBinding("contact.name")

        email_props = email.properties({"required": True})
        name_props = name.properties({"required": True})
        assert email_props["error"] and name_props["error"]

        await asyncio.sleep(0.05)
        assert statuses == [True]

        email.handle_change("ada@example.com")
        name.handle_change("Ada")
        email.properties({"required": True})
        name.properties({"required": True})

        await asyncio.sleep(0.05)
        assert statuses == [True, False]

    assert not hook.active
    assert validation.handler_count == 0


@pytest.mark.asyncio
async def test_async_save_pipeline_runs_in_priority_order():
    """Sequential dispatch for ordered side effects, concurrent for fan-out."""
    before_save = create_channel()
    after_save = create_channel()
    log = []

    async def normalise(doc):
        doc["title"] = doc["title"].strip()
        log.append("normalise")

    def stamp(doc):
        doc["version"] = doc.get("version", 0) + 1
        log.append("stamp")

    async def notify(doc):
        await asyncio.sleep(0)
        log.append("notify")

    async def index(doc):
        log.append("index")

    before_save.use_event(normalise, priority=1)
    before_save.use_event(stamp, priority=2)
    after_save.on(notify)
    after_save.on(index)

    document = {"title": "  Draft  "}
    await before_save.raise_async_sequential(document)
    result = await after_save.raise_async(document)

    assert result is document
    assert document == {"title": "Draft", "version": 1}
    assert log[:2] == ["normalise", "stamp"]
    assert sorted(log[2:]) == ["index", "notify"]


def test_config_round_trip():
    assert get_config().debounce_seconds == 0.02
    configure(debounce_seconds=0.5)
    assert get_config().debounce_seconds == 0.5
    reset_config()
    assert get_config().default_priority == 100
