"""
Identity-keyed metadata for handlers.

Priorities and merge functions are attached to handlers through a side table
rather than as attributes, so tagging never changes a handler's equality,
hashing or lifetime. Entries disappear when the handler is garbage collected.

Bound methods are keyed by (instance, function) rather than by the method
object, because every attribute access builds a fresh bound method:

    set_priority(view.on_save, 1)
    channel.on(view.on_save)  # runs with priority 1

Their entries live as long as the instance does.

Objects that cannot be weakly referenced (some builtins, callable instances
with __slots__) fall back to an id()-keyed table that keeps the handler alive
for as long as it carries metadata; clear_metadata() releases it.

A handler without its own priority inherits the priority of the handler it
wraps (its __wrapped__ attribute, as set by functools.wraps).
"""

import logging
import weakref
from dataclasses import dataclass
from types import MethodType
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from boundevents.config import get_config

logger = logging.getLogger(__name__)

# Bound on __wrapped__ chains followed by get_priority()
_MAX_WRAPPED_DEPTH = 16


@dataclass
class HandlerMetadata:
    """Per-handler annotations."""
    priority: Optional[int] = None
    merge: Optional[Callable[[Any, Any], Any]] = None


_weak_table: "weakref.WeakKeyDictionary[Any, HandlerMetadata]" = weakref.WeakKeyDictionary()
# instance -> {function: metadata} for bound methods
_method_table: "weakref.WeakKeyDictionary[Any, Dict[Any, HandlerMetadata]]" = weakref.WeakKeyDictionary()
# key -> (anchor kept alive, metadata)
_strong_table: Dict[Hashable, Tuple[Any, HandlerMetadata]] = {}

# Bumped on every priority change so channels can tell their sort went stale
_priority_version: int = 0


def _strong_key(handler: Any) -> Tuple[Hashable, Any]:
    """(table key, anchor object) for the id()-keyed fallback table."""
    if isinstance(handler, MethodType):
        return (id(handler.__self__), handler.__func__), handler.__self__
    return id(handler), handler


def _strong_lookup(handler: Any) -> Optional[HandlerMetadata]:
    key, anchor = _strong_key(handler)
    entry = _strong_table.get(key)
    if entry is not None and entry[0] is anchor:
        return entry[1]
    return None


def _strong_store(handler: Any) -> HandlerMetadata:
    logger.debug(f"Handler {handler!r} is not weak-referenceable, holding metadata strongly")
    key, anchor = _strong_key(handler)
    metadata = HandlerMetadata()
    _strong_table[key] = (anchor, metadata)
    return metadata


def _lookup(handler: Any) -> Optional[HandlerMetadata]:
    if isinstance(handler, MethodType):
        try:
            methods = _method_table.get(handler.__self__)
        except TypeError:
            return _strong_lookup(handler)
        return methods.get(handler.__func__) if methods is not None else None
    try:
        return _weak_table.get(handler)
    except TypeError:
        return _strong_lookup(handler)


def _lookup_or_create(handler: Any) -> HandlerMetadata:
    metadata = _lookup(handler)
    if metadata is not None:
        return metadata
    if isinstance(handler, MethodType):
        try:
            methods = _method_table.setdefault(handler.__self__, {})
        except TypeError:
            return _strong_store(handler)
        metadata = methods[handler.__func__] = HandlerMetadata()
        return metadata
    metadata = HandlerMetadata()
    try:
        _weak_table[handler] = metadata
    except TypeError:
        return _strong_store(handler)
    return metadata


def get_metadata(handler: Any) -> Optional[HandlerMetadata]:
    """Return the metadata attached to handler, or None."""
    return _lookup(handler)


def clear_metadata(handler: Any) -> None:
    """Drop every annotation on handler.

    Also releases a handler held by the fallback table for objects that
    cannot be weakly referenced.
    """
    global _priority_version
    if isinstance(handler, MethodType):
        owner = handler.__self__
        if owner in _method_table:
            methods = _method_table[owner]
            methods.pop(handler.__func__, None)
            if not methods:
                del _method_table[owner]
    elif handler in _weak_table:
        del _weak_table[handler]
    key, anchor = _strong_key(handler)
    entry = _strong_table.get(key)
    if entry is not None and entry[0] is anchor:
        del _strong_table[key]
    _priority_version += 1


def priority_version() -> int:
    """Current priority version; changes whenever any priority is set."""
    return _priority_version


def set_priority(handler: Callable, order: int) -> Callable:
    """Attach a dispatch order to handler.

    Lower orders run first. The handler itself is returned unchanged.
    """
    global _priority_version
    _lookup_or_create(handler).priority = order
    _priority_version += 1
    return handler


def _own_priority(handler: Any) -> Optional[int]:
    metadata = _lookup(handler)
    return metadata.priority if metadata is not None else None


def get_priority(handler: Callable) -> int:
    """Return handler's order, or the configured default when unset.

    Follows __wrapped__ when the handler itself carries no priority.
    """
    for _ in range(_MAX_WRAPPED_DEPTH):
        priority = _own_priority(handler)
        if priority is not None:
            return priority
        handler = getattr(handler, '__wrapped__', None)
        if handler is None:
            break
    return get_config().default_priority


def has_priority(handler: Callable) -> bool:
    return _own_priority(handler) is not None


def set_merge(handler: Callable, merge: Callable[[Any, Any], Any]) -> Callable:
    """Tag handler with a merge function (see boundstate.composition)."""
    _lookup_or_create(handler).merge = merge
    return handler


def get_merge(handler: Any) -> Optional[Callable[[Any, Any], Any]]:
    """Return the merge function handler was tagged with, or None."""
    metadata = _lookup(handler)
    return metadata.merge if metadata is not None else None
