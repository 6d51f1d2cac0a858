"""Cache key formatting.

The default key is ``(identity, method_name)``. Call arguments are left out
on purpose: there is no safe default way to fold arbitrary arguments into a
key, so methods whose result depends on arguments need a custom
``key_format``.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from cacheable.errors import InvalidOptionError

KeyFormat = Callable[..., Any]

# Receivers exposing this attribute supply their own identity component
CACHE_KEY_ACCESSOR = "cache_key"

_MISSING = object()


def receiver_identity(receiver: Any) -> Any:
    """Identity component of the default key.

    Uses the receiver's ``cache_key`` when it has one (called if it is a
    method, used as-is otherwise). Falls back to the qualified name of the
    receiver's class, or of the receiver itself when it is a class.
    """
    is_class = isinstance(receiver, type)
    accessor = getattr(receiver, CACHE_KEY_ACCESSOR, _MISSING)

    if accessor is not _MISSING:
        if inspect.ismethod(accessor):
            return accessor()
        # On a class, plain functions and properties belong to its instances
        if not is_class or not (callable(accessor) or isinstance(accessor, property)):
            return accessor() if callable(accessor) else accessor

    return receiver.__qualname__ if is_class else type(receiver).__qualname__


def default_key_format(receiver: Any, method_name: str, args: tuple, **kwargs: Any) -> tuple:
    """Return ``(identity, method_name)``, ignoring ``args`` and ``kwargs``."""
    return tuple(part for part in (receiver_identity(receiver), method_name) if part is not None)


def resolve_key_format(key_format: KeyFormat | None) -> KeyFormat:
    """Validate a ``key_format`` option, falling back to the default."""
    if key_format is None:
        return default_key_format
    if not callable(key_format):
        raise InvalidOptionError(
            f"key_format must be callable, got {type(key_format).__name__}",
            option="key_format",
            value=key_format,
        )
    return key_format
