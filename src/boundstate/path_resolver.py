"""
Dotted-path resolution against a mutable object graph.

resolve("address.city", root) walks root["address"] and returns
(root["address"], "city"): the object that owns the leaf and the leaf's name.
Intermediate nodes that are missing (or hold a falsy value) are created as
empty dicts on the way down, so a bound field always has somewhere to live.

Nodes may be mappings (item access) or plain objects such as dataclass
instances (attribute access).
"""

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Tuple

from boundevents.errors import ConfigurationError
from boundstate.identity_cache import CacheKey, SingleValueIdentityCache

logger = logging.getLogger(__name__)

_MISSING = object()


def read_leaf(target: Any, key: str, default: Any = None) -> Any:
    """Read target[key] (or target.key); default when absent."""
    if isinstance(target, Mapping):
        return target.get(key, default)
    return getattr(target, key, default)


def write_leaf(target: Any, key: str, value: Any) -> None:
    """Assign target[key] (or target.key) in place."""
    if isinstance(target, MutableMapping):
        target[key] = value
    else:
        setattr(target, key, value)


def resolve(path: str, root: Any) -> Tuple[Any, str]:
    """Resolve path against root, materialising intermediate nodes.

    Args:
        path: Dot-separated field path, e.g. "settings.display.theme"
        root: Object graph to walk

    Returns:
        (leaf_target, leaf_key). The leaf itself is not read or created.

    Raises:
        ConfigurationError: path is empty or root is None
    """
    if not isinstance(path, str) or not path:
        raise ConfigurationError(f"Binding path must be a non-empty string, got {path!r}")
    if root is None:
        raise ConfigurationError(f"Cannot resolve {path!r}: no root object to bind to")

    *parents, leaf_key = path.split('.')
    node = root
    for segment in parents:
        child = read_leaf(node, segment, _MISSING)
        if child is _MISSING or not child:
            child = {}
            write_leaf(node, segment, child)
            logger.debug(f"Materialised {segment!r} while resolving {path!r}")
        node = child
    return node, leaf_key


class PathResolver:
    """Memoised resolve() for one binding.

    Recomputes only when the root is replaced by another object or the path
    changes. Mutating the current root in place keeps the cached resolution.
    """

    def __init__(self):
        self._cache: SingleValueIdentityCache[Tuple[Any, str]] = SingleValueIdentityCache()

    def resolve(self, path: str, root: Any) -> Tuple[Any, str]:
        return self._cache.get_or_compute(
            CacheKey.from_args(root, path),
            lambda: resolve(path, root),
        )

    @property
    def resolutions(self) -> int:
        """Number of uncached resolutions performed so far."""
        return self._cache.misses

    def invalidate(self) -> None:
        self._cache.invalidate()
