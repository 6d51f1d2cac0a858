"""Method-level memoization with pluggable cache backends.

Usage:
    from cacheable import Cacheable, cacheable

    class Repo(Cacheable):
        @cacheable
        def star_count(self):
            return fetch_star_count()

    repo = Repo()
    repo.star_count()              # computes and stores
    repo.star_count()              # served from the backend
    repo.star_count_without_cache()
    repo.clear_star_count_cache()
"""

__version__ = "1.0.4"

from .backends import (
    CacheBackend,
    MemoryBackend,
    get_backend,
    lookup_backend,
    register_backend,
    reset_backend,
    set_backend,
)
from .bypass import DirectPredicate, NamedPredicate, NoPredicate
from .decorators import (
    Cacheable,
    CacheableMeta,
    MethodBinding,
    Registration,
    cacheable,
    cacheable_methods,
    get_registration,
    register,
)
from .errors import (
    CacheableError,
    ConfigurationError,
    InvalidBackendError,
    InvalidOptionError,
    NoOriginalMethodError,
    UnknownBackendError,
)
from .keys import default_key_format
from .naming import DerivedNames

__all__ = [
    # Interception
    "Cacheable",
    "CacheableMeta",
    "cacheable",
    "register",
    "get_registration",
    "cacheable_methods",
    "Registration",
    "MethodBinding",
    "DerivedNames",
    # Keys and bypass
    "default_key_format",
    "NoPredicate",
    "DirectPredicate",
    "NamedPredicate",
    # Backends
    "CacheBackend",
    "MemoryBackend",
    "get_backend",
    "set_backend",
    "reset_backend",
    "lookup_backend",
    "register_backend",
    # Errors
    "CacheableError",
    "ConfigurationError",
    "InvalidOptionError",
    "InvalidBackendError",
    "UnknownBackendError",
    "NoOriginalMethodError",
]
