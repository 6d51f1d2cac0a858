"""Per-call bypass predicates built from the ``unless`` option.

``unless`` may be omitted, a callable ``(receiver, method_name, args)``, or
the name of a method on the receiver called with ``(method_name, args)``.
A true result skips the cache for that call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cacheable.errors import InvalidOptionError


class BypassPredicate(ABC):
    """Base class for bypass predicates."""

    @abstractmethod
    def __call__(self, receiver: Any, method_name: str, args: tuple, kwargs: dict) -> bool:
        """Return True when this call should skip the cache."""
        pass


class NoPredicate(BypassPredicate):
    """Never bypass."""

    def __call__(self, receiver: Any, method_name: str, args: tuple, kwargs: dict) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoPredicate()"


@dataclass(frozen=True)
class DirectPredicate(BypassPredicate):
    """Call a predicate function with the receiver, method name and arguments."""

    predicate: Callable[..., Any]

    def __call__(self, receiver: Any, method_name: str, args: tuple, kwargs: dict) -> bool:
        return bool(self.predicate(receiver, method_name, args, **kwargs))


@dataclass(frozen=True)
class NamedPredicate(BypassPredicate):
    """Look up a predicate method on the receiver at call time."""

    attribute: str

    def __call__(self, receiver: Any, method_name: str, args: tuple, kwargs: dict) -> bool:
        predicate = getattr(receiver, self.attribute)
        return bool(predicate(method_name, args, **kwargs))


NEVER = NoPredicate()


def build_bypass(unless: Any) -> BypassPredicate:
    """Turn an ``unless`` option into a predicate, failing fast on bad shapes."""
    if unless is None:
        return NEVER
    if isinstance(unless, str):
        if not unless:
            raise InvalidOptionError("unless must not be an empty name", option="unless", value=unless)
        return NamedPredicate(unless)
    if callable(unless):
        return DirectPredicate(unless)
    raise InvalidOptionError(
        f"unless must be a callable or a method name, got {type(unless).__name__}",
        option="unless",
        value=unless,
    )
