"""Pytest configuration and shared fixtures."""
import pytest
from dataclasses import dataclass, field
from typing import Optional

from boundevents import create_channel, reset_config
from boundstate import ChangeRegistry, field_properties


@dataclass
class Address:
    """Test nested record."""
    street: str = ""
    city: Optional[str] = None


@dataclass
class Customer:
    """Test root record - bound through attribute access."""
    name: str = ""
    email: Optional[str] = None
    address: Optional[Address] = None
    tags: list = field(default_factory=list)


@pytest.fixture(autouse=True)
def reset_engine_state():
    """Reset process-wide engine state before and after each test."""
    # Store original values
    original_subscribers = {key: list(callbacks) for key, callbacks in ChangeRegistry._subscribers.items()}
    original_property_handlers = dict(field_properties._handlers)

    ChangeRegistry.clear()
    reset_config()

    yield

    # Restore original values after test
    ChangeRegistry._subscribers.clear()
    ChangeRegistry._subscribers.update(original_subscribers)
    field_properties._handlers.clear()
    field_properties._handlers.update(original_property_handlers)
    field_properties._dirty = True
    field_properties.cancel_pending()
    reset_config()


@pytest.fixture
def channel():
    """Provide a fresh event channel."""
    return create_channel(name="test")


@pytest.fixture
def document():
    """Provide a nested mapping to bind against."""
    return {"title": "Draft", "author": {"name": "Ada", "email": None}}


@pytest.fixture
def customer():
    """Provide a dataclass root to bind against."""
    return Customer(name="Grace", address=Address(street="1 Main St"))


@pytest.fixture
def recorder():
    """Provide a callable that records its calls."""
    calls = []

    def record(*args):
        calls.append(args)

    record.calls = calls
    return record
