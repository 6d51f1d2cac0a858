"""Method interception for cacheable methods.

Registering ``foo`` on a class replaces ``foo`` with a dispatcher and adds
four entry points next to it:

- ``foo_with_cache``: always go through the backend
- ``foo_without_cache``: always call the original implementation
- ``foo_key_format``: return the cache key for the given arguments
- ``clear_foo_cache``: delete the entry for the given arguments

Usage:
    class Repo(Cacheable):
        @cacheable
        def star_count(self):
            return fetch_star_count(self.name)

        @cacheable(unless="skip_cache", key_format=lambda r, name, args: (r.name, name))
        def forks(self):
            ...

    # Batch registration, also before the methods exist
    Repo.cacheable("watchers", "issues", cache_options={"expires_in": 60})

Originals are kept in a per-class method table and looked up by name at
call time, starting at the class that generated the entry point and
continuing down the receiver's MRO. Each class layer that defines a
registered method gets its own binding, so a subclass override is cached
and its ``_without_cache`` runs the subclass body.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from cacheable.backends import get_backend
from cacheable.bypass import BypassPredicate, build_bypass
from cacheable.errors import InvalidOptionError, NoOriginalMethodError
from cacheable.keys import KeyFormat, resolve_key_format
from cacheable.naming import DerivedNames

logger = logging.getLogger(__name__)

TABLE_ATTRIBUTE = "_cacheable_table"

# Set on every generated function, holds its MethodBinding
GENERATED_MARKER = "__cacheable_binding__"

_MISSING = object()


@dataclass(frozen=True)
class Registration:
    """Options declared for one method name."""

    name: str
    names: DerivedNames
    key_format: KeyFormat
    bypass: BypassPredicate
    cache_options: Any = None

    @classmethod
    def build(
        cls,
        name: str,
        unless: Any = None,
        key_format: KeyFormat | None = None,
        cache_options: Any = None,
    ) -> Registration:
        """Validate options and build a registration."""
        if not isinstance(name, str) or not name:
            raise InvalidOptionError(
                f"cacheable method names must be non-empty strings, got {name!r}",
                option="name",
                value=name,
            )
        return cls(
            name=name,
            names=DerivedNames.for_name(name),
            key_format=resolve_key_format(key_format),
            bypass=build_bypass(unless),
            cache_options=cache_options,
        )


@dataclass
class MethodTable:
    """Cacheable state owned by a single class."""

    registrations: dict[str, Registration] = field(default_factory=dict)
    bindings: dict[str, MethodBinding] = field(default_factory=dict)
    originals: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MethodBinding:
    """Ties a registration to the class layer whose entry points it generated."""

    owner: type
    registration: Registration

    @property
    def name(self) -> str:
        return self.registration.name

    def is_shadowed(self, receiver: Any, classlevel: bool = False) -> bool:
        """True when a more derived layer of the receiver's class binds this name.

        That happens for ``super()`` calls out of an overriding method; only
        the outermost layer caches.
        """
        receiver_class = receiver if classlevel else type(receiver)
        for klass in receiver_class.__mro__:
            table = klass.__dict__.get(TABLE_ATTRIBUTE)
            if table is not None and self.name in table.bindings:
                return klass is not self.owner
        return False

    def resolve(self, receiver: Any, classlevel: bool = False) -> Callable[..., Any]:
        """Return the original implementation bound to receiver.

        Raises:
            NoOriginalMethodError: If no implementation is reachable
        """
        receiver_class = receiver if classlevel else type(receiver)
        mro = receiver_class.__mro__
        if self.owner in mro:
            start = mro.index(self.owner)
        else:
            mro, start = self.owner.__mro__, 0

        original = _lookup_original(mro, start, self.name)
        if original is _MISSING:
            raise NoOriginalMethodError(
                f"undefined method '{self.name}' for {self.owner.__qualname__}",
                owner=self.owner.__qualname__,
                method=self.name,
            )

        bind = getattr(original, "__get__", None)
        if bind is None:
            return original
        return bind(None if classlevel else receiver, receiver_class)


def _is_generated(value: Any) -> bool:
    function = value.__func__ if isinstance(value, classmethod) else value
    return getattr(function, GENERATED_MARKER, None) is not None


def _is_wrappable(value: Any) -> bool:
    if isinstance(value, classmethod):
        return True
    if isinstance(value, (staticmethod, property, type)):
        return False
    return callable(value) and hasattr(value, "__get__")


def _lookup_original(mro: tuple, start: int, name: str) -> Any:
    for klass in mro[start:]:
        table = klass.__dict__.get(TABLE_ATTRIBUTE)
        if table is not None and name in table.originals:
            return table.originals[name]
        candidate = klass.__dict__.get(name, _MISSING)
        if candidate is not _MISSING and not _is_generated(candidate):
            return candidate
    return _MISSING


def _own_table(cls: type) -> MethodTable:
    table = cls.__dict__.get(TABLE_ATTRIBUTE)
    if table is None:
        table = MethodTable()
        type.__setattr__(cls, TABLE_ATTRIBUTE, table)
    return table


def get_registration(cls: type, name: str) -> Registration | None:
    """Return the registration in effect for name on cls, own or inherited."""
    for klass in cls.__mro__:
        table = klass.__dict__.get(TABLE_ATTRIBUTE)
        if table is not None and name in table.registrations:
            return table.registrations[name]
    return None


def cacheable_methods(cls: type) -> dict[str, Registration]:
    """All registrations in effect on cls, keyed by method name."""
    registrations: dict[str, Registration] = {}
    for klass in reversed(cls.__mro__):
        table = klass.__dict__.get(TABLE_ATTRIBUTE)
        if table is not None:
            registrations.update(table.registrations)
    return registrations


def _own_original(cls: type, name: str) -> Any:
    """Return the method cls itself defines for name, or _MISSING."""
    current = cls.__dict__.get(name, _MISSING)
    if current is _MISSING or _is_generated(current):
        return _MISSING
    if not _is_wrappable(current):
        raise InvalidOptionError(
            f"{cls.__qualname__}.{name} is a {type(current).__name__}, not a method",
            option="name",
            value=current,
        )
    return current


def _capture_original(cls: type, name: str) -> None:
    current = _own_original(cls, name)
    if current is _MISSING:
        return
    _own_table(cls).originals[name] = current
    logger.debug("Captured original %s.%s", cls.__qualname__, name)


def _generate(binding: MethodBinding, classlevel: bool) -> dict[str, Any]:
    registration = binding.registration
    name = registration.name
    names = registration.names

    def key_format(receiver, *args, **kwargs):
        return registration.key_format(receiver, name, args, **kwargs)

    def clear_cache(receiver, *args, **kwargs):
        return get_backend().delete(key_format(receiver, *args, **kwargs))

    def without_cache(receiver, *args, **kwargs):
        return binding.resolve(receiver, classlevel)(*args, **kwargs)

    def with_cache(receiver, *args, **kwargs):
        return get_backend().fetch(
            key_format(receiver, *args, **kwargs),
            registration.cache_options,
            lambda: without_cache(receiver, *args, **kwargs),
        )

    def dispatcher(receiver, *args, **kwargs):
        if binding.is_shadowed(receiver, classlevel):
            return without_cache(receiver, *args, **kwargs)
        if registration.bypass(receiver, name, args, kwargs):
            return without_cache(receiver, *args, **kwargs)
        return with_cache(receiver, *args, **kwargs)

    owner = binding.owner
    generated = dict(zip(names.generated(), (with_cache, without_cache, key_format, clear_cache)))
    for attribute, function in generated.items():
        function.__name__ = attribute
        function.__qualname__ = f"{owner.__qualname__}.{attribute}"
        function.__module__ = owner.__module__

    original = owner.__dict__[TABLE_ATTRIBUTE].originals.get(name)
    if original is not None:
        functools.update_wrapper(dispatcher, getattr(original, "__func__", original))
    else:
        dispatcher.__name__ = name
        dispatcher.__qualname__ = f"{owner.__qualname__}.{name}"
        dispatcher.__module__ = owner.__module__
    # Dispatcher goes last so the public name is replaced after its siblings exist
    generated[name] = dispatcher

    for function in generated.values():
        setattr(function, GENERATED_MARKER, binding)
    return generated


class _UnresolvedEntryPoint:
    """Entry point installed while a registered method has no original.

    Binds to instances like a method and to the class like a classmethod,
    so calling through the class reports the missing method.
    """

    def __init__(self, instance_level: Callable[..., Any], class_level: Callable[..., Any]):
        self.instance_level = instance_level
        self.class_level = class_level
        functools.update_wrapper(self, instance_level)

    def __get__(self, instance: Any, owner: type | None = None) -> Callable[..., Any]:
        if instance is None:
            return self.class_level.__get__(owner, type(owner))
        return self.instance_level.__get__(instance, owner)


def _entry_points(binding: MethodBinding) -> dict[str, Any]:
    """Generated entry points for binding, shaped after the original's kind."""
    original = _lookup_original(binding.owner.__mro__, 0, binding.name)
    if original is _MISSING:
        instance_level = _generate(binding, classlevel=False)
        class_level = _generate(binding, classlevel=True)
        return {
            attribute: _UnresolvedEntryPoint(function, class_level[attribute])
            for attribute, function in instance_level.items()
        }
    if isinstance(original, classmethod):
        return {
            attribute: classmethod(function)
            for attribute, function in _generate(binding, classlevel=True).items()
        }
    return _generate(binding, classlevel=False)


def _install(cls: type, registration: Registration) -> MethodBinding:
    """Generate and install entry points for registration on cls."""
    table = _own_table(cls)
    name = registration.name
    previous = table.bindings.get(name)

    binding = MethodBinding(owner=cls, registration=registration)
    entry_points = _entry_points(binding)

    table.bindings[name] = binding
    for attribute, function in entry_points.items():
        type.__setattr__(cls, attribute, function)

    if previous is None or previous.registration is not registration:
        _propagate(cls, name, registration)
    return binding


def _propagate(cls: type, name: str, registration: Registration) -> None:
    """Rebind subclass layers that override name and inherit its registration."""
    for subclass in cls.__subclasses__():
        table = subclass.__dict__.get(TABLE_ATTRIBUTE)
        if table is not None and name in table.registrations:
            continue
        current = subclass.__dict__.get(name, _MISSING)
        if current is not _MISSING and _is_wrappable(current):
            _capture_original(subclass, name)
            _install(subclass, registration)
        else:
            _propagate(subclass, name, registration)


def register(
    cls: type,
    *names: str,
    unless: Any = None,
    key_format: KeyFormat | None = None,
    cache_options: Any = None,
) -> tuple[Registration, ...]:
    """Make one or more methods of cls cacheable with shared options.

    A name may be registered before the method is defined. The latest
    registration for a name replaces the previous one.

    Args:
        cls: Class that owns the methods
        names: Method names
        unless: Predicate ``(receiver, method_name, args)`` or the name of a
            receiver method called with ``(method_name, args)``; true skips the cache
        key_format: Callable ``(receiver, method_name, args)`` returning the key
        cache_options: Passed through to ``backend.fetch`` untouched

    Returns:
        The new registrations, in order

    Raises:
        InvalidOptionError: If an option or name has the wrong shape
    """
    if not isinstance(cls, type):
        raise InvalidOptionError(
            f"cacheable methods are registered on classes, got {type(cls).__name__}",
            option="cls",
            value=cls,
        )
    if not names:
        raise InvalidOptionError("cacheable needs at least one method name", option="name")

    registrations = tuple(
        Registration.build(
            name, unless=unless, key_format=key_format, cache_options=cache_options
        )
        for name in names
    )
    for registration in registrations:
        _own_original(cls, registration.name)

    for registration in registrations:
        _capture_original(cls, registration.name)
        _own_table(cls).registrations[registration.name] = registration
        _install(cls, registration)
        logger.debug("Registered cacheable method %s.%s", cls.__qualname__, registration.name)
    return registrations


class _PendingCacheable:
    """Placeholder left in a class body by the ``cacheable`` decorator."""

    def __init__(self, function: Any, options: dict[str, Any]):
        self.function = function
        self.options = options

    def __set_name__(self, owner: type, name: str) -> None:
        # CacheableMeta swaps placeholders out before the class is created
        raise InvalidOptionError(
            f"@cacheable on {owner.__qualname__}.{name} requires a Cacheable class",
            option="name",
            value=name,
        )


def cacheable(
    function: Any = None,
    /,
    *,
    unless: Any = None,
    key_format: KeyFormat | None = None,
    cache_options: Any = None,
) -> Any:
    """Mark a method in a ``Cacheable`` class body as cacheable.

    Works bare (``@cacheable``) or with options
    (``@cacheable(unless=..., key_format=..., cache_options=...)``).
    Options are validated immediately.
    """
    build_bypass(unless)
    resolve_key_format(key_format)
    options = {"unless": unless, "key_format": key_format, "cache_options": cache_options}

    def decorate(target: Any) -> _PendingCacheable:
        if not _is_wrappable(target):
            raise InvalidOptionError(
                f"@cacheable applies to methods and classmethods, got {type(target).__name__}",
                option="function",
                value=target,
            )
        return _PendingCacheable(target, options)

    if function is not None:
        return decorate(function)
    return decorate


class CacheableMeta(type):
    """Metaclass that keeps cacheable methods wrapped as classes evolve.

    - ``@cacheable`` placeholders in the class body are registered once the
      class exists.
    - A method that overrides an inherited cacheable method gets its own
      binding at the subclass layer.
    - Assigning a method to a registered name later is stored as the
      original instead of replacing the dispatcher.
    """

    def __new__(mcs, name, bases, namespace, **kwargs):
        pending: dict[str, _PendingCacheable] = {}
        for attribute, value in list(namespace.items()):
            if isinstance(value, _PendingCacheable):
                pending[attribute] = value
                namespace[attribute] = value.function

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        for attribute, value in namespace.items():
            if attribute in pending:
                continue
            registration = get_registration(cls, attribute)
            if registration is None or not _is_wrappable(value) or _is_generated(value):
                continue
            _capture_original(cls, attribute)
            _install(cls, registration)

        for attribute, marker in pending.items():
            register(cls, attribute, **marker.options)
        return cls

    def __setattr__(cls, attribute, value):
        registration = get_registration(cls, attribute)
        if registration is None or _is_generated(value) or not _is_wrappable(value):
            super().__setattr__(attribute, value)
            return

        table = _own_table(cls)
        table.originals[attribute] = value
        logger.debug("Captured original %s.%s", cls.__qualname__, attribute)
        _install(cls, table.registrations.get(attribute, registration))

    def __delattr__(cls, attribute):
        table = cls.__dict__.get(TABLE_ATTRIBUTE)
        if table is not None and attribute in table.originals:
            del table.originals[attribute]
            logger.debug("Removed original %s.%s", cls.__qualname__, attribute)
            binding = table.bindings.get(attribute)
            if binding is not None:
                _install(cls, binding.registration)
            return
        super().__delattr__(attribute)

    def cacheable(
        cls,
        *names: str,
        unless: Any = None,
        key_format: KeyFormat | None = None,
        cache_options: Any = None,
    ) -> tuple[Registration, ...]:
        """Register methods of this class as cacheable. See ``register``."""
        return register(
            cls, *names, unless=unless, key_format=key_format, cache_options=cache_options
        )


class Cacheable(metaclass=CacheableMeta):
    """Base class for classes with cacheable methods."""
