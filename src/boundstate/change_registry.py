"""
ChangeRegistry: process-wide fan-out of field mutations.

Every BoundValue subscribes under its leaf field name. When any binding
writes a field, the registry calls every subscriber of that name with
(target, value); each subscriber compares target with its own leaf target
and refreshes its consumer only on a match.

Keys are bare leaf names, not qualified by root: two roots that share a field
name notify each other's subscribers, which then filter by target identity.
"""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Any, Any], None]


class ChangeRegistry:
    """Singleton registry of change subscribers keyed by field name.

    Thread safety: Not thread-safe (all operations expected on one thread).
    Subscribing or unsubscribing from inside a callback is safe: notify()
    iterates over a snapshot.
    """
    _subscribers: Dict[str, List[ChangeCallback]] = {}

    @classmethod
    def subscribe(cls, key: str, callback: ChangeCallback) -> Callable[[], None]:
        """Subscribe callback to mutations of fields named key.

        Returns:
            A callable that removes exactly this subscription.
        """
        cls._subscribers.setdefault(key, []).append(callback)
        logger.debug(f"Subscribed to {key!r} ({len(cls._subscribers[key])} subscribers)")

        def unsubscribe() -> None:
            cls._unsubscribe(key, callback)

        return unsubscribe

    @classmethod
    def _unsubscribe(cls, key: str, callback: ChangeCallback) -> None:
        callbacks = cls._subscribers.get(key)
        if callbacks is None:
            logger.warning(f"Unsubscribe from {key!r} with no subscribers")
            return
        for index, registered in enumerate(callbacks):
            if registered is callback:
                del callbacks[index]
                break
        else:
            logger.warning(f"Unsubscribe of unknown callback from {key!r}")
        if not callbacks:
            del cls._subscribers[key]
        logger.debug(f"Unsubscribed from {key!r}")

    @classmethod
    def notify(cls, key: str, target: Any, value: Any) -> None:
        """Call every subscriber of key with (target, value).

        A failing callback propagates to the writer and stops the remaining
        callbacks.
        """
        callbacks = list(cls._subscribers.get(key, ()))
        logger.debug(f"Notifying {len(callbacks)} subscriber(s) of {key!r}")
        for callback in callbacks:
            callback(target, value)

    @classmethod
    def subscriber_count(cls, key: str) -> int:
        return len(cls._subscribers.get(key, ()))

    @classmethod
    def keys(cls) -> List[str]:
        """Field names that currently have subscribers."""
        return list(cls._subscribers)

    @classmethod
    def clear(cls) -> None:
        """Drop every subscription."""
        cls._subscribers.clear()
        logger.debug("Cleared all change subscriptions")
