"""Cache backend implementations and the process-wide backend slot.

Provides:
- CacheBackend: Abstract base class for custom backends
- MemoryBackend: In-process dict store (the default)
- A name registry (``register_backend`` / ``lookup_backend``)
- The global current backend (``get_backend`` / ``set_backend``)

The current backend is read at call time by every cacheable method, so
swapping it affects methods that were registered earlier. The slot is not
synchronized.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any, TypeVar

from cacheable.errors import InvalidBackendError, UnknownBackendError

logger = logging.getLogger(__name__)

B = TypeVar("B", bound=type)

# Methods an object must expose to be adopted as a backend
BACKEND_METHODS = ("fetch", "delete")

BACKEND_SUFFIX = "Backend"


class CacheBackend(ABC):
    """Abstract base class for cache backends.

    Subclassing is optional: any object exposing callable ``fetch`` and
    ``delete`` is accepted by ``set_backend``.
    """

    @abstractmethod
    def fetch(self, key: Hashable, options: Any, compute: Callable[[], Any]) -> Any:
        """Return the value stored under key, computing and storing it if absent.

        A compute that raises must leave nothing stored.
        """
        pass

    @abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Delete key from cache. Returns True if key existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all cached values."""
        pass


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


def normalize_key(key: Any) -> Hashable:
    """Turn list and dict keys into hashable equivalents.

    Lists and tuples become tuples, sets become frozensets and mappings
    become tuples of sorted items, recursively.
    """
    if isinstance(key, (list, tuple)):
        return tuple(normalize_key(part) for part in key)
    if isinstance(key, Mapping):
        return tuple(
            sorted(
                ((normalize_key(k), normalize_key(v)) for k, v in key.items()),
                key=repr,
            )
        )
    if isinstance(key, (set, frozenset)):
        return frozenset(normalize_key(part) for part in key)
    return key


# Registered backend classes, keyed by class name
_backend_classes: dict[str, type] = {}


def register_backend(backend_class: B) -> B:
    """Class decorator that makes a backend selectable by name.

    The class name must end in ``Backend``; ``MyStoreBackend`` is then
    reachable as ``set_backend("my_store")``.
    """
    if not backend_class.__name__.endswith(BACKEND_SUFFIX):
        raise ValueError(
            f"Backend class names must end with '{BACKEND_SUFFIX}': {backend_class.__name__}"
        )
    _backend_classes[backend_class.__name__] = backend_class
    return backend_class


@register_backend
class MemoryBackend(CacheBackend):
    """In-process dict backend.

    Not persisted and not shared between processes. ``options`` are accepted
    and ignored: there is no expiry or eviction.

    Individual reads and writes take a lock, but ``fetch`` is a
    check-compute-store sequence that is not atomic. Two concurrent callers
    can both miss, both compute, and the last write wins.
    """

    def __init__(self):
        self._cache: dict[Hashable, Any] = {}
        self._lock = Lock()
        self._stats = CacheStats()

    def fetch(self, key: Hashable, options: Any, compute: Callable[[], Any]) -> Any:
        """Return the cached value or compute, store, and return it."""
        key = normalize_key(key)
        with self._lock:
            if key in self._cache:
                self._stats.hits += 1
                return self._cache[key]
            self._stats.misses += 1

        value = compute()

        with self._lock:
            self._cache[key] = value
        return value

    def read(self, key: Hashable) -> Any | None:
        """Return the value stored under key, or None."""
        with self._lock:
            return self._cache.get(normalize_key(key))

    def write(self, key: Hashable, value: Any) -> Any:
        """Store value under key and return it."""
        with self._lock:
            self._cache[normalize_key(key)] = value
        return value

    def exists(self, key: Hashable) -> bool:
        """Check if key is stored."""
        with self._lock:
            return normalize_key(key) in self._cache

    def delete(self, key: Hashable) -> bool:
        """Delete key from cache."""
        with self._lock:
            key = normalize_key(key)
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._cache.clear()
            self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._cache)


def backend_class_name(name: str) -> str:
    """Map a snake_case backend name to its class name ('memory' -> 'MemoryBackend')."""
    parts = str(name).split("_")
    return "".join(part[:1].upper() + part[1:].lower() for part in parts) + BACKEND_SUFFIX


def lookup_backend(name: str) -> type:
    """Resolve a backend name to its registered class.

    Raises:
        UnknownBackendError: If no backend class is registered for the name
    """
    class_name = backend_class_name(name)
    try:
        return _backend_classes[class_name]
    except KeyError:
        raise UnknownBackendError(
            f"Unknown cache backend {name!r}: no backend class named {class_name}",
            name=name,
            expected=class_name,
        ) from None


def is_cache_backend(candidate: Any) -> bool:
    """Check whether an object satisfies the backend protocol.

    Classes are rejected: their ``fetch`` and ``delete`` are unbound.
    """
    if isinstance(candidate, type):
        return False
    return all(callable(getattr(candidate, method, None)) for method in BACKEND_METHODS)


def _interpret_backend(name_or_backend: Any) -> Any:
    if is_cache_backend(name_or_backend):
        return name_or_backend

    if not isinstance(name_or_backend, str):
        raise InvalidBackendError(
            "Must pass the name of a known backend or a backend instance",
            backend=name_or_backend,
        )

    return lookup_backend(name_or_backend)()


# Global backend instance
_backend: Any = None


def get_backend() -> Any:
    """Get or create the global backend instance.

    The first call builds the backend named by ``Settings.default_backend``
    (``memory`` unless configured otherwise).
    """
    global _backend

    if _backend is None:
        _backend = _create_backend()

    return _backend


def set_backend(name_or_backend: Any) -> Any:
    """Replace the global backend.

    Args:
        name_or_backend: A backend name (e.g. ``"memory"``) or any object
            exposing ``fetch`` and ``delete``

    Returns:
        The backend now in use

    Raises:
        UnknownBackendError: If a name does not resolve to a backend class
        InvalidBackendError: If the argument is neither a name nor a backend
    """
    global _backend

    backend = _interpret_backend(name_or_backend)
    _backend = backend
    logger.debug("Cache backend set to %s", type(backend).__name__)
    return backend


def _create_backend() -> Any:
    """Create the default backend from configuration."""
    from cacheable.config.settings import get_settings

    name = get_settings().default_backend
    backend = lookup_backend(name)()
    logger.debug("Using %s as default cache backend", type(backend).__name__)
    return backend


def reset_backend() -> None:
    """Reset the global backend instance. Useful for testing."""
    global _backend
    _backend = None
