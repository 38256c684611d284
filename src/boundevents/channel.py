"""
Multicast event channels.

An EventChannel is an ordered handler set with several dispatch modes:

- raise_event(): synchronous, priority ordered, exceptions propagate
- raise_async(): every handler invoked, awaitable results gathered concurrently
- raise_async_sequential(): one handler at a time, fail-fast
- raise_once(): debounced, coalesces bursts into one raise_event()

Handler order comes from boundevents.handler_metadata priorities (lower runs
first, ties keep registration order). The sorted snapshot is rebuilt only when
membership or a priority changed since the last dispatch.

Usage:
    changed = create_channel()
    unsubscribe = changed.on(lambda target, value: print(target, value))
    changed.raise_event(target, value)
    unsubscribe()
"""

import asyncio
import functools
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from boundevents.config import get_config
from boundevents.errors import ConfigurationError
from boundevents.handler_metadata import get_priority, priority_version, set_priority

logger = logging.getLogger(__name__)

R = TypeVar('R')

Handler = Callable[..., Any]
TimerHandle = Union[asyncio.TimerHandle, threading.Timer]

_MISSING = object()


def _identity(value: Any) -> Any:
    return value


def _same_deps(a: Tuple[Any, ...], b: Optional[Tuple[Any, ...]]) -> bool:
    """Element-wise identity comparison of two dependency tuples."""
    if b is None or len(a) != len(b):
        return False
    return all(x is y for x, y in zip(a, b))


class EventChannel(Generic[R]):
    """Ordered multicast handler set.

    Not thread-safe: all registration and dispatch is expected on one thread
    (the debounce timer fallback is the single exception, see raise_once()).
    """

    def __init__(self, extractor: Optional[Callable[[Any], R]] = None, name: Optional[str] = None):
        """
        Args:
            extractor: Maps the first raise argument to the value returned by
                the raise_* methods. Defaults to identity.
            name: Label used in log messages.
        """
        if extractor is not None and not callable(extractor):
            raise ConfigurationError(f"Channel extractor must be callable, got {extractor!r}")
        self.name = name or f"channel-{id(self):x}"
        self.data: Dict[Any, Any] = {}
        self._extractor = extractor or _identity
        self._handlers: Dict[Handler, None] = {}  # insertion-ordered set
        self._ordered: List[Handler] = []
        self._dirty = True
        self._sorted_at_version = -1
        self._timer: Optional[TimerHandle] = None
        self._pending_args: Optional[Tuple[Any, ...]] = None
        self._generation = 0
        self._pending_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<EventChannel {self.name} handlers={len(self._handlers)}>"

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, handler: Any) -> bool:
        return handler in self._handlers

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    # ========== REGISTRATION ==========

    def on(self, handler: Handler) -> Callable[[], None]:
        """Register handler.

        Registering an already registered handler keeps a single entry.

        Returns:
            A callable that removes exactly this handler.
        """
        if not callable(handler):
            raise ConfigurationError(f"Event handler must be callable, got {handler!r}")
        if handler not in self._handlers:
            self._handlers[handler] = None
            self._dirty = True
            logger.debug(f"{self.name}: registered {handler!r} ({len(self._handlers)} handlers)")

        def unsubscribe() -> None:
            self.off(handler)

        return unsubscribe

    def off(self, handler: Handler) -> None:
        """Remove handler. Unknown handlers are ignored."""
        if self._handlers.pop(handler, _MISSING) is not _MISSING:
            self._dirty = True
            logger.debug(f"{self.name}: removed {handler!r} ({len(self._handlers)} handlers)")

    def once(self, handler: Handler) -> Callable[[], None]:
        """Register handler for a single dispatch.

        The wrapper runs handler and then removes itself. If handler raises,
        the wrapper stays registered. The wrapper dispatches with handler's
        current priority, including priorities set after registration.
        """
        if not callable(handler):
            raise ConfigurationError(f"Event handler must be callable, got {handler!r}")

        @functools.wraps(handler)
        def run_once(*args: Any) -> Any:
            result = handler(*args)
            unsubscribe()
            return result

        unsubscribe = self.on(run_once)
        return unsubscribe

    def clear(self) -> None:
        """Remove every handler and drop any pending debounced raise."""
        self._handlers.clear()
        self._dirty = True
        self.cancel_pending()

    def use_event(self, handler: Handler, deps: Iterable[Any] = (), priority: Optional[int] = None) -> 'EventHook':
        """Register handler for the lifetime of the active bound scope.

        Call the returned hook's update() on every render pass; the handler is
        re-registered only when deps change by identity. When a bound scope is
        active, the hook deregisters on scope teardown.
        """
        hook = EventHook(self, handler, deps, priority)
        # Lazy import: boundstate builds on boundevents
        from boundstate.scope import get_active_scope
        scope = get_active_scope()
        if scope is not None:
            scope.add_teardown(hook.close)
        return hook

    # ========== DISPATCH ==========

    def _dispatch_order(self) -> List[Handler]:
        """Handlers sorted by priority; re-sorted only when stale."""
        version = priority_version()
        if self._dirty or version != self._sorted_at_version:
            # sorted() is stable, so equal priorities keep registration order
            self._ordered = sorted(self._handlers, key=get_priority)
            self._dirty = False
            self._sorted_at_version = version
        return list(self._ordered)

    def _result(self, args: Tuple[Any, ...]) -> Optional[R]:
        return self._extractor(args[0]) if args else None

    def raise_event(self, *args: Any) -> Optional[R]:
        """Invoke every handler synchronously in priority order.

        An exception from any handler propagates and the remaining handlers
        are not called.

        Returns:
            The extractor applied to the first argument (None without args).
        """
        for handler in self._dispatch_order():
            handler(*args)
        return self._result(args)

    async def raise_async(self, *args: Any) -> Optional[R]:
        """Invoke every handler, then await their results concurrently.

        All handlers are invoked in priority order before anything is awaited.
        Awaitable results and synchronous failures form one task set that is
        awaited to completion. Sibling tasks are not cancelled; afterwards the
        first failure in dispatch order is re-raised.
        """
        loop = asyncio.get_running_loop()
        pending: List[Awaitable[Any]] = []
        for handler in self._dispatch_order():
            try:
                result = handler(*args)
            except Exception as exc:
                failed = loop.create_future()
                failed.set_exception(exc)
                pending.append(failed)
                continue
            if inspect.isawaitable(result):
                pending.append(asyncio.ensure_future(result))
        if pending:
            logger.debug(f"{self.name}: awaiting {len(pending)} handler task(s)")
            outcomes = await asyncio.gather(*pending, return_exceptions=True)
            failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if failures:
                if len(failures) > 1:
                    logger.debug(f"{self.name}: {len(failures)} handlers failed, raising the first")
                raise failures[0]
        return self._result(args)

    async def raise_async_sequential(self, *args: Any) -> Optional[R]:
        """Invoke handlers one at a time in priority order.

        Each awaitable result is awaited before the next handler runs. A failure
        stops the dispatch and propagates.
        """
        for handler in self._dispatch_order():
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        return self._result(args)

    # ========== DEBOUNCED DISPATCH ==========

    @property
    def pending(self) -> bool:
        """True while a debounced raise is scheduled."""
        return self._timer is not None

    def raise_once(self, *args: Any) -> None:
        """Schedule a debounced raise_event() with these arguments.

        Calls within the debounce window cancel the scheduled raise and restart
        the window, so a burst produces exactly one raise_event() with the
        arguments of the last call. The running asyncio loop schedules the raise
        when there is one; otherwise a daemon timer thread does.

        Every schedule gets a new generation; a timer that fires after being
        superseded (a timer thread cannot be stopped once running) is ignored.
        """
        delay = get_config().debounce_seconds
        with self._pending_lock:
            self._cancel_locked()
            self._pending_args = args
            generation = self._generation
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                timer = threading.Timer(delay, self._fire_pending, args=(generation,))
                timer.daemon = True
                self._timer = timer
                timer.start()
            else:
                self._timer = loop.call_later(delay, self._fire_pending, generation)

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending_args = None
        self._generation += 1

    def cancel_pending(self) -> None:
        """Drop the scheduled debounced raise, if any."""
        with self._pending_lock:
            self._cancel_locked()

    def flush(self) -> bool:
        """Run the scheduled debounced raise immediately.

        Returns:
            True if a raise was pending and has now run.
        """
        with self._pending_lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            generation = self._generation
        return self._fire_pending(generation)

    def _take_pending(self, generation: int) -> Optional[Tuple[Any, ...]]:
        with self._pending_lock:
            if generation != self._generation or self._timer is None:
                logger.debug(f"{self.name}: ignoring superseded debounced raise")
                return None
            args = self._pending_args or ()
            self._timer = None
            self._pending_args = None
            self._generation += 1
            return args

    def _fire_pending(self, generation: int) -> bool:
        args = self._take_pending(generation)
        if args is None:
            return False
        try:
            self.raise_event(*args)
        except Exception:
            logger.exception(f"{self.name}: debounced raise failed")
            raise
        return True


class EventHook:
    """Registration of one handler that follows render-pass dependencies.

    Returned by EventChannel.use_event(). Usable as a context manager.
    """

    def __init__(self, channel: EventChannel, handler: Handler, deps: Iterable[Any] = (), priority: Optional[int] = None):
        self._channel = channel
        self._handler: Optional[Handler] = None
        self._deps: Optional[Tuple[Any, ...]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.update(handler, deps, priority)

    @property
    def handler(self) -> Optional[Handler]:
        return self._handler

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def update(self, handler: Handler, deps: Iterable[Any] = (), priority: Optional[int] = None) -> bool:
        """Re-register handler if deps changed by identity since the last call.

        Returns:
            True if the registration was replaced.
        """
        deps = tuple(deps)
        if self._unsubscribe is not None and _same_deps(deps, self._deps):
            return False
        self.close()
        if priority is not None:
            set_priority(handler, priority)
        self._handler = handler
        self._deps = deps
        self._unsubscribe = self._channel.on(handler)
        return True

    def close(self) -> None:
        """Deregister the handler."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> 'EventHook':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def create_channel(extractor: Optional[Callable[[Any], R]] = None, name: Optional[str] = None) -> EventChannel[R]:
    """Create a new event channel."""
    return EventChannel(extractor, name=name)
