"""
Contextvars-based binding scopes.

A Scope is an immutable overlay: a reference to its parent plus the keys set
locally. Lookups fall through to the parent, so each scope sees its parent's
merged view with its own overrides on top. Scopes are never mutated after
construction, which lets any number of descendants read a shared ancestor.

bound_scope() pushes a new scope for the duration of a with-block:

    with bound_scope(target=document, on_change=autosave):
        name, set_name = bind("author.name", "")
        with bound_scope(on_change=compose(mark_dirty)):
            ...  # on_change here runs mark_dirty, then autosave

Well-known keys:
- target: default root object for bindings created in the scope
- on_change: called as on_change(leaf_target, value) after every bound write

Key components:
- current_bound_scope: ContextVar holding the innermost active Scope
- bound_scope(): context manager creating and activating a scope
- compose_scope(): overlay builder that wires composable handlers
"""

import contextvars
import logging
from collections.abc import Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional

from boundevents.handler_metadata import get_merge
from boundstate.composition import compose_handlers

logger = logging.getLogger(__name__)

_MISSING = object()


class Scope(Mapping):
    """Persistent key/value overlay.

    Attributes:
        parent: Enclosing scope, None for a root scope
        local: Keys set at this level (read-only view)
    """

    __slots__ = ('_parent', '_local', '_teardown', '_retained')

    def __init__(self, parent: Optional['Scope'] = None, local: Optional[Mapping] = None):
        self._parent = parent
        self._local: Dict[str, Any] = dict(local or {})
        self._teardown: List[Callable[[], None]] = []
        self._retained: Dict[Hashable, Any] = {}

    @property
    def parent(self) -> Optional['Scope']:
        return self._parent

    @property
    def local(self) -> Mapping:
        return MappingProxyType(self._local)

    @property
    def depth(self) -> int:
        """Number of ancestors above this scope."""
        depth, scope = 0, self._parent
        while scope is not None:
            depth, scope = depth + 1, scope._parent
        return depth

    def __getitem__(self, key: str) -> Any:
        scope = self
        while scope is not None:
            if key in scope._local:
                return scope._local[key]
            scope = scope._parent
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        scope = self
        while scope is not None:
            if key in scope._local:
                return True
            scope = scope._parent
        return False

    def _chain(self) -> List['Scope']:
        """Scopes from outermost to this one."""
        chain, scope = [], self
        while scope is not None:
            chain.append(scope)
            scope = scope._parent
        chain.reverse()
        return chain

    def merged(self) -> Dict[str, Any]:
        """Flattened view: ancestors first, later levels override."""
        merged: Dict[str, Any] = {}
        for scope in self._chain():
            merged.update(scope._local)
        return merged

    def __iter__(self) -> Iterator[str]:
        return iter(self.merged())

    def __len__(self) -> int:
        return len(self.merged())

    def __repr__(self) -> str:
        return f"<Scope depth={self.depth} local={sorted(self._local)}>"

    def child(self, **props: Any) -> 'Scope':
        """Build a scope below this one, composing tagged handlers."""
        return compose_scope(self, props)

    def add_teardown(self, callback: Callable[[], None]) -> None:
        """Run callback when this scope's bound_scope() block exits."""
        self._teardown.append(callback)

    def retain(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """Return the object kept under key, creating it with factory once.

        Lets a render pass that runs repeatedly inside one scope reuse what it
        created the first time. Retained objects are dropped on close().
        """
        if key not in self._retained:
            self._retained[key] = factory()
        return self._retained[key]

    def close(self) -> None:
        """Run teardown callbacks, most recently added first."""
        callbacks, self._teardown = self._teardown, []
        self._retained.clear()
        for callback in reversed(callbacks):
            callback()


def compose_scope(parent: Optional[Scope], props: Mapping) -> Scope:
    """Overlay props on parent.

    A local value tagged with compose() whose key maps to a callable in the
    parent is replaced by a handler that runs both and merges the results.
    """
    local = dict(props)
    if parent is not None:
        for key, value in props.items():
            merge = get_merge(value) if callable(value) else None
            if merge is None:
                continue
            inherited = parent.get(key, _MISSING)
            if callable(inherited):
                local[key] = compose_handlers(value, inherited, merge)
                logger.debug(f"Composed handler {key!r} with inherited handler")
    return Scope(parent, local)


# Core contextvar for the innermost active scope
current_bound_scope: contextvars.ContextVar[Optional[Scope]] = contextvars.ContextVar(
    'current_bound_scope', default=None
)

_root_scope = Scope()


def get_active_scope() -> Optional[Scope]:
    """The innermost scope entered with bound_scope(), or None."""
    return current_bound_scope.get()


def current_scope() -> Scope:
    """The innermost active scope, or an empty root scope outside any block."""
    scope = current_bound_scope.get()
    return scope if scope is not None else _root_scope


@contextmanager
def bound_scope(**props: Any) -> Iterator[Scope]:
    """Create and activate a scope overlaying props on the current scope.

    On exit the scope's teardown callbacks run (closing bindings and event
    hooks created inside it) and the previous scope becomes active again.

    Usage:
        with bound_scope(target=form_data) as scope:
            value, set_value = bind("email")
    """
    scope = compose_scope(get_active_scope(), props)
    token = current_bound_scope.set(scope)
    logger.debug(f"Entered {scope!r}")
    try:
        yield scope
    finally:
        try:
            scope.close()
        finally:
            current_bound_scope.reset(token)
            logger.debug(f"Exited {scope!r}")
