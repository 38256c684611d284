"""
Handler composition across scope levels.

A handler tagged with compose() does not simply shadow the handler of the
same name in an enclosing scope. Instead both run and their results are
combined by the merge function:

    with bound_scope(on_save=lambda doc: 2):
        with bound_scope(on_save=compose(lambda doc: 3, lambda a, b: a + b)) as scope:
            scope["on_save"](doc)  # -> 5

Raising CancellationSignal anywhere in the local handler, the inherited
handler or the merge function abandons the merge and yields the local result.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from boundevents.errors import CancellationSignal, ConfigurationError
from boundevents.handler_metadata import get_merge, set_merge

logger = logging.getLogger(__name__)

Merge = Callable[[Any, Any], Any]


def keep_local(a: Any, b: Any) -> Any:
    """Default merge: the local handler's result wins."""
    return a


def compose(handler: Callable, merge: Optional[Merge] = None) -> Callable:
    """Tag handler so it composes with, rather than replaces, an inherited handler.

    Args:
        handler: The local handler
        merge: Combines (local_result, inherited_result). Defaults to keep_local.

    Returns:
        handler itself, now tagged.

    Raises:
        ConfigurationError: handler or merge is not callable
    """
    if merge is None:
        merge = keep_local
    if not callable(handler) or not callable(merge):
        raise ConfigurationError("compose() must be called with functions as parameters")
    return set_merge(handler, merge)


also = compose


def is_composable(value: Any) -> bool:
    """True if value is a handler tagged with compose()."""
    return callable(value) and get_merge(value) is not None


def _discard(result: Any) -> None:
    """Close an unawaited coroutine so it is not reported as never awaited."""
    if inspect.iscoroutine(result):
        result.close()


async def _merge_async(merge: Merge, a: Any, b: Any) -> Any:
    resolved_a = None
    try:
        resolved_a = await a if inspect.isawaitable(a) else a
        resolved_b = await b if inspect.isawaitable(b) else b
        return merge(resolved_a, resolved_b)
    except CancellationSignal:
        logger.debug("Async merge cancelled, keeping local result")
        return resolved_a
    finally:
        _discard(b)


def compose_handlers(local: Callable, inherited: Callable, merge: Merge) -> Callable:
    """Build the handler that runs local then inherited and merges the results.

    If either result is awaitable the composed handler returns a coroutine
    that awaits both before merging. When inherited fails, a coroutine
    returned by local is closed before the error propagates.
    """

    def composed(*args: Any, **kwargs: Any) -> Any:
        a = None
        try:
            a = local(*args, **kwargs)
            b = inherited(*args, **kwargs)
        except CancellationSignal:
            logger.debug(f"Merge of {local!r} cancelled, keeping local result")
            return a
        except Exception:
            _discard(a)
            raise
        if inspect.isawaitable(a) or inspect.isawaitable(b):
            return _merge_async(merge, a, b)
        try:
            return merge(a, b)
        except CancellationSignal:
            logger.debug(f"Merge of {local!r} cancelled, keeping local result")
            return a

    composed.__wrapped__ = local
    return composed
