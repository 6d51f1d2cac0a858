"""Cacheable Error Hierarchy.

Structured exception types for method registration and backend selection.
Errors raised by cached method bodies, key formatters, or bypass predicates
are never wrapped in these types; they reach the caller unchanged.
"""

from __future__ import annotations


class CacheableError(Exception):
    """Base error for all cacheable exceptions."""

    code = "CACHEABLE_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Configuration Errors
class ConfigurationError(CacheableError):
    """Base error for invalid registration or backend configuration."""

    code = "CONFIGURATION"


class InvalidOptionError(ConfigurationError, TypeError):
    """A `cacheable` option or method name has the wrong shape."""

    code = "INVALID_OPTION"

    def __init__(self, message: str, option: str = None, value: object = None):
        super().__init__(message, {"option": option, "value": repr(value)})
        self.option = option
        self.value = value


class InvalidBackendError(ConfigurationError, TypeError):
    """Object passed to set_backend is neither a backend nor a backend name."""

    code = "INVALID_BACKEND"

    def __init__(self, message: str, backend: object = None):
        super().__init__(message, {"backend": repr(backend)})
        self.backend = backend


class UnknownBackendError(ConfigurationError, LookupError):
    """Backend name does not resolve to a registered backend class."""

    code = "UNKNOWN_BACKEND"

    def __init__(self, message: str, name: str = None, expected: str = None):
        super().__init__(message, {"name": name, "expected": expected})
        self.name = name
        self.expected = expected


# Resolution Errors
class NoOriginalMethodError(CacheableError, AttributeError):
    """No original implementation is reachable for a cacheable method."""

    code = "NO_SUCH_METHOD"

    def __init__(self, message: str, owner: str = None, method: str = None):
        super().__init__(message, {"owner": owner, "method": method})
        self.owner = owner
        self.method = method
