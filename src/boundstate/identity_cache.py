"""
Identity-keyed memoisation.

Caches values that should be recomputed only when one of their inputs is
replaced by a different object. Inputs are compared by identity, not by
equality: two equal dicts are different roots for path resolution, while the
same dict mutated in place is still the same root.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

T = TypeVar('T')


@dataclass(frozen=True, eq=False)
class CacheKey:
    """Immutable cache key whose components compare by identity.

    Strings and other immutable scalars are compared by equality, since
    equal strings built at different times are interchangeable.
    """
    components: Tuple[Any, ...]

    def matches(self, other: Optional['CacheKey']) -> bool:
        if other is None or len(self.components) != len(other.components):
            return False
        return all(_same_component(a, b) for a, b in zip(self.components, other.components))

    @classmethod
    def from_args(cls, *args) -> 'CacheKey':
        """Create cache key from variable arguments."""
        return cls(components=args)


def _same_component(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if isinstance(a, (str, bytes, int, float)) and type(a) is type(b):
        return a == b
    return False


class SingleValueIdentityCache(Generic[T]):
    """
    Cache for one value that depends on a tuple of inputs.

    The cached key holds strong references to its components, so an input
    object cannot be collected and its id() reused while it is cached.

    Example:
        cache = SingleValueIdentityCache()
        target, key = cache.get_or_compute(
            CacheKey.from_args(root, "a.b.c"),
            lambda: resolve("a.b.c", root),
        )
    """

    def __init__(self):
        self._cached_key: Optional[CacheKey] = None
        self._cached_value: Optional[T] = None
        self.misses = 0

    def get_or_compute(self, key: CacheKey, compute_fn: Callable[[], T]) -> T:
        """
        Get cached value or compute and cache it.

        Args:
            key: Cache key for the current inputs
            compute_fn: Function to compute value if the inputs changed

        Returns:
            Cached or computed value
        """
        if key.matches(self._cached_key):
            return self._cached_value

        value = compute_fn()
        self.misses += 1
        self._cached_key = key
        self._cached_value = value
        return value

    def invalidate(self):
        """Manually invalidate the cache."""
        self._cached_key = None
        self._cached_value = None
