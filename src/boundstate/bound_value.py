"""
BoundValue: read/write access to one field of a bound object graph.

A BoundValue ties a dotted path to a root object (explicit, or the active
scope's "target"). Reads return the leaf value or the default; writes mutate
the leaf in place, fan out through ChangeRegistry and then call the scope's
ambient on_change(leaf_target, value).

Each listening BoundValue also subscribes to ChangeRegistry for writes to the
same leaf, from any binding, and calls its refresh callback when one lands,
which is how a consumer learns it has to re-read.
"""

import logging
from typing import Any, Callable, Optional, Tuple, Union

from boundstate.change_registry import ChangeRegistry
from boundstate.path_resolver import PathResolver, read_leaf, resolve, write_leaf
from boundstate.scope import Scope, current_scope, get_active_scope

logger = logging.getLogger(__name__)

_PRIMITIVES = (str, bytes, int, float, complex, bool, type(None))

Updater = Callable[[Any], Any]


def is_unchanged(current: Any, new: Any) -> bool:
    """Identity for objects, equality for same-typed primitives."""
    if current is new:
        return True
    return isinstance(current, _PRIMITIVES) and type(current) is type(new) and current == new


def _apply_write(target: Any, key: str, value_or_updater: Union[Any, Updater],
                 on_change: Optional[Callable[[Any, Any], Any]]) -> bool:
    current = read_leaf(target, key)
    value = value_or_updater(current) if callable(value_or_updater) else value_or_updater
    if is_unchanged(current, value):
        return False
    write_leaf(target, key, value)
    ChangeRegistry.notify(key, target, value)
    if on_change is not None:
        on_change(target, value)
    return True


class BoundValue:
    """Live binding of one dotted path.

    Attributes:
        path: Dotted field path
        default: Returned by get() while the leaf is missing or None
        version: Incremented whenever a write changes this leaf
        refresh: Called after such a write; may be swapped between render passes
    """

    def __init__(
        self,
        path: str,
        default: Any = None,
        target: Any = None,
        refresh: Optional[Callable[[], None]] = None,
        scope: Optional[Scope] = None,
        listen: bool = True,
    ):
        """
        Args:
            path: Dotted path relative to the root object
            default: Fallback read value
            target: Root object; defaults to the scope's "target"
            refresh: Called when a write changes this leaf
            scope: Scope supplying target/on_change; defaults to the active one
            listen: Subscribe for changes. Without a subscription refresh is
                never called and nothing needs closing.
        """
        self.path = path
        self.default = default
        self.version = 0
        self._target = target
        self._scope = scope if scope is not None else current_scope()
        self.refresh = refresh
        self._resolver = PathResolver()
        self._subscribed: Optional[Tuple[Any, str]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = not listen
        self.resolve()

        active = get_active_scope()
        if listen and scope is None and active is not None:
            active.add_teardown(self.close)

    def __repr__(self) -> str:
        return f"<BoundValue {self.path!r}>"

    @property
    def root(self) -> Any:
        return self._target if self._target is not None else self._scope.get('target')

    def retarget(self, target: Any) -> None:
        """Point the binding at a different root object."""
        self._target = target
        self.resolve()

    def resolve(self) -> Tuple[Any, str]:
        """(leaf_target, leaf_key) for the current root and path."""
        leaf_target, leaf_key = self._resolver.resolve(self.path, self.root)
        if not self._closed and (self._subscribed is None or self._subscribed[0] is not leaf_target):
            self._resubscribe(leaf_target, leaf_key)
        return leaf_target, leaf_key

    def _resubscribe(self, leaf_target: Any, leaf_key: str) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._subscribed = (leaf_target, leaf_key)
        self._unsubscribe = ChangeRegistry.subscribe(leaf_key, self._handle_change)

    def _handle_change(self, changed_target: Any, value: Any) -> None:
        if self._subscribed is None or changed_target is not self._subscribed[0]:
            return
        self.version += 1
        logger.debug(f"{self!r} changed to {value!r}")
        if self.refresh is not None:
            self.refresh()

    def get(self) -> Any:
        leaf_target, leaf_key = self.resolve()
        value = read_leaf(leaf_target, leaf_key)
        return self.default if value is None else value

    @property
    def value(self) -> Any:
        return self.get()

    def set(self, value_or_updater: Union[Any, Updater]) -> bool:
        """Write the leaf.

        Args:
            value_or_updater: New value, or a function mapping the current value
                to the new one

        Returns:
            False when the value was unchanged and nothing was notified.
        """
        leaf_target, leaf_key = self.resolve()
        return _apply_write(leaf_target, leaf_key, value_or_updater, self._scope.get('on_change'))

    def close(self) -> None:
        """Stop listening for changes."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._subscribed = None

    def __enter__(self) -> 'BoundValue':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def bind(path: str, default: Any = None, target: Any = None,
         refresh: Optional[Callable[[], None]] = None) -> Tuple[Any, Callable[[Any], bool]]:
    """Bind path in the active scope.

    Meant to be called on every render pass. Inside a bound_scope() block,
    repeated calls for the same path and target share one BoundValue, which
    takes the latest default and refresh and is closed with the scope.
    Outside any block nothing could close a subscription, so the value is
    read without one and refresh is never called.

    Returns:
        (current_value, setter). The setter accepts a value or an updater
        function.
    """
    scope = get_active_scope()
    if scope is None:
        if refresh is not None:
            logger.warning(f"bind({path!r}) outside a bound scope: refresh will not be called")
        bound = BoundValue(path, default, target=target, listen=False)
        return bound.get(), bound.set

    bound = scope.retain(
        ('bind', path, id(target)),
        lambda: BoundValue(path, default, target=target, refresh=refresh),
    )
    bound.default = default
    bound.refresh = refresh
    return bound.get(), bound.set


def get_value(path: str, default: Any = None, root: Any = None) -> Any:
    """One-off read of path without creating a subscription."""
    if root is None:
        root = current_scope().get('target')
    leaf_target, leaf_key = resolve(path, root)
    value = read_leaf(leaf_target, leaf_key)
    return default if value is None else value


def set_value(path: str, value_or_updater: Union[Any, Updater], root: Any = None) -> bool:
    """One-off write of path; notifies subscribers and the scope's on_change."""
    scope = current_scope()
    if root is None:
        root = scope.get('target')
    leaf_target, leaf_key = resolve(path, root)
    return _apply_write(leaf_target, leaf_key, value_or_updater, scope.get('on_change'))
