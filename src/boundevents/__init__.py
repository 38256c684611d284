"""
Multicast event channels with priority ordering and async dispatch.

Key Features:
- Priority-ordered handler sets with stable ordering for ties
- Synchronous, concurrent-async and sequential-async dispatch
- Debounced raise that coalesces bursts into a single dispatch
- Identity-keyed handler metadata that never owns handler lifetime
- Scope-bound registrations (see boundstate.bound_scope)

Quick Start:
    >>> from boundevents import create_channel, set_priority
    >>>
    >>> saved = create_channel()
    >>> _ = saved.on(set_priority(lambda doc: print("index", doc), 10))
    >>> _ = saved.on(set_priority(lambda doc: print("audit", doc), 5))
    >>> saved.raise_event({"id": 1})
    audit {'id': 1}
    index {'id': 1}
    {'id': 1}

Modules:
    - channel: EventChannel, EventHook, create_channel
    - handler_metadata: priority and merge-function side table
    - config: engine-wide settings (debounce window, default priority)
    - errors: error taxonomy
"""

# Channels
from boundevents.channel import (
    EventChannel,
    EventHook,
    create_channel,
)

# Handler metadata
from boundevents.handler_metadata import (
    set_priority,
    get_priority,
    get_merge,
    clear_metadata,
)

# Configuration
from boundevents.config import (
    EngineConfig,
    configure,
    get_config,
    reset_config,
)

# Errors
from boundevents.errors import (
    EngineError,
    ConfigurationError,
    CancellationSignal,
)

__all__ = [
    # Channels
    'EventChannel',
    'EventHook',
    'create_channel',
    # Handler metadata
    'set_priority',
    'get_priority',
    'get_merge',
    'clear_metadata',
    # Configuration
    'EngineConfig',
    'configure',
    'get_config',
    'reset_config',
    # Errors
    'EngineError',
    'ConfigurationError',
    'CancellationSignal',
]
