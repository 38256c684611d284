"""
Reactive binding of nested object graphs.

This package binds dotted field paths to live objects, fans out writes to
every interested binding, and layers configuration through nested scopes
whose handlers can compose instead of shadowing each other.

Key Features:
- Dotted-path resolution with automatic creation of intermediate dicts
- Process-wide change registry keyed by field name
- Contextvars-based scopes as immutable overlays
- Handler composition across scope levels with cancellation
- Headless field bindings with transforms and commit-on-blur

Quick Start:
    >>> from boundstate import bound_scope, bind, compose
    >>>
    >>> document = {}
    >>> with bound_scope(target=document, on_change=lambda t, v: print("saved", v)):
    ...     name, set_name = bind("author.name", "anonymous")
    ...     set_name("Ada")
    saved Ada
    True
    >>> document
    {'author': {'name': 'Ada'}}

Architecture:
    bound_scope() → Scope (overlay + composed handlers)
        → BoundValue → PathResolver → (leaf_target, leaf_key)
        → write → ChangeRegistry.notify() → subscribers refresh
               → scope on_change(leaf_target, value)

Modules:
    - path_resolver: resolve() and the memoised PathResolver
    - identity_cache: identity-keyed single-value cache
    - change_registry: ChangeRegistry
    - composition: compose()/also() and composed handlers
    - scope: Scope, bound_scope(), current_scope()
    - bound_value: BoundValue, bind(), get_value(), set_value()
    - field_binding: FieldBinding and the field_properties channel
"""

# Resolution
from boundstate.path_resolver import (
    resolve,
    PathResolver,
    read_leaf,
    write_leaf,
)

# Change notification
from boundstate.change_registry import ChangeRegistry

# Composition
from boundstate.composition import (
    compose,
    also,
    is_composable,
    compose_handlers,
    keep_local,
)

# Scopes
from boundstate.scope import (
    Scope,
    bound_scope,
    compose_scope,
    current_scope,
    get_active_scope,
)

# Bound values
from boundstate.bound_value import (
    BoundValue,
    bind,
    get_value,
    set_value,
    is_unchanged,
)

# Field bindings
from boundstate.field_binding import (
    FieldBinding,
    field_properties,
    default_extractor,
    is_event,
    DONT_SET_VALUE,
)

# Errors re-exported for convenience
from boundevents.errors import ConfigurationError, CancellationSignal

__all__ = [
    # Resolution
    'resolve',
    'PathResolver',
    'read_leaf',
    'write_leaf',
    # Change notification
    'ChangeRegistry',
    # Composition
    'compose',
    'also',
    'is_composable',
    'compose_handlers',
    'keep_local',
    # Scopes
    'Scope',
    'bound_scope',
    'compose_scope',
    'current_scope',
    'get_active_scope',
    # Bound values
    'BoundValue',
    'bind',
    'get_value',
    'set_value',
    'is_unchanged',
    # Field bindings
    'FieldBinding',
    'field_properties',
    'default_extractor',
    'is_event',
    'DONT_SET_VALUE',
    # Errors
    'ConfigurationError',
    'CancellationSignal',
]
