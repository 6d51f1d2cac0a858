"""Tests for cache backends and the backend registry."""

from unittest.mock import MagicMock

import pytest

from cacheable.backends import (
    CacheBackend,
    CacheStats,
    MemoryBackend,
    backend_class_name,
    get_backend,
    is_cache_backend,
    lookup_backend,
    normalize_key,
    register_backend,
    reset_backend,
    set_backend,
)
from cacheable.errors import ConfigurationError, InvalidBackendError, UnknownBackendError


class TestMemoryBackend:
    """Tests for MemoryBackend."""

    @pytest.fixture
    def backend(self):
        """Create a fresh backend instance."""
        return MemoryBackend()

    def test_fetch_computes_on_miss(self, backend):
        """Missing key invokes compute and stores the result."""
        compute = MagicMock(return_value=19)

        assert backend.fetch("key", None, compute) == 19
        compute.assert_called_once_with()
        assert backend.read("key") == 19

    def test_fetch_returns_stored_value(self, backend):
        """Present key is returned without calling compute."""
        backend.write("key", "stored")
        compute = MagicMock(return_value="fresh")

        assert backend.fetch("key", None, compute) == "stored"
        compute.assert_not_called()

    def test_fetch_caches_none(self, backend):
        """A None result is stored like any other value."""
        compute = MagicMock(return_value=None)

        backend.fetch("key", None, compute)
        backend.fetch("key", None, compute)

        assert compute.call_count == 1
        assert backend.exists("key")

    def test_fetch_ignores_options(self, backend):
        """Options are accepted but have no effect."""
        assert backend.fetch("key", {"expires_in": 0}, lambda: 1) == 1
        assert backend.fetch("key", {"expires_in": 0}, lambda: 2) == 1

    def test_failed_compute_stores_nothing(self, backend):
        """A compute that raises leaves no entry behind."""

        def boom():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError, match="upstream down"):
            backend.fetch("key", None, boom)

        assert not backend.exists("key")
        assert backend.size == 0

    def test_delete_existing(self, backend):
        """Deleting a present key removes it and returns True."""
        backend.write("key", "value")

        assert backend.delete("key") is True
        assert not backend.exists("key")

    def test_delete_nonexistent(self, backend):
        """Deleting a missing key returns False."""
        assert backend.delete("nonexistent") is False

    def test_delete_leaves_other_keys(self, backend):
        """Delete only removes the requested key."""
        backend.write("keep", 1)
        backend.write("drop", 2)

        backend.delete("drop")

        assert backend.read("keep") == 1

    def test_clear(self, backend):
        """Clear removes all entries."""
        backend.write("key1", "value1")
        backend.write("key2", "value2")
        assert backend.size == 2

        backend.clear()
        assert backend.size == 0

    def test_list_keys_match_tuple_keys(self, backend):
        """List keys are stored under their tuple equivalent."""
        backend.fetch(["Repo", "star_count"], None, lambda: 19)

        assert backend.exists(("Repo", "star_count"))
        assert backend.delete(["Repo", "star_count"]) is True

    def test_stats_tracking(self, backend):
        """Fetch tracks hit/miss statistics."""
        backend.fetch("key", None, lambda: "value")
        backend.fetch("key", None, lambda: "value")

        assert backend.stats.hits == 1
        assert backend.stats.misses == 1
        assert backend.stats.hit_rate == 50.0

    def test_is_cache_backend(self, backend):
        """MemoryBackend satisfies the backend protocol."""
        assert isinstance(backend, CacheBackend)
        assert is_cache_backend(backend)


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate_calculation(self):
        """Hit rate is the percentage of hits."""
        stats = CacheStats(hits=80, misses=20)
        assert stats.hit_rate == 80.0

    def test_hit_rate_no_accesses(self):
        """No accesses gives a zero hit rate."""
        assert CacheStats().hit_rate == 0.0


class TestNormalizeKey:
    """Tests for normalize_key."""

    def test_scalars_unchanged(self):
        """Hashable scalars pass through."""
        assert normalize_key("key") == "key"
        assert normalize_key(42) == 42

    def test_nested_lists(self):
        """Nested lists become nested tuples."""
        assert normalize_key(["a", ["b", 1]]) == ("a", ("b", 1))

    def test_dicts_are_order_independent(self):
        """Dict keys normalize the same regardless of insertion order."""
        assert normalize_key({"b": 2, "a": 1}) == normalize_key({"a": 1, "b": 2})

    def test_sets(self):
        """Sets become frozensets."""
        assert normalize_key({1, 2}) == frozenset({1, 2})


class TestBackendLookup:
    """Tests for backend name resolution."""

    def test_class_name_convention(self):
        """Snake case names map to CamelCase classes ending in Backend."""
        assert backend_class_name("memory") == "MemoryBackend"
        assert backend_class_name("my_store") == "MyStoreBackend"
        assert backend_class_name("MEMORY") == "MemoryBackend"

    def test_lookup_memory(self):
        """The memory backend is registered by default."""
        assert lookup_backend("memory") is MemoryBackend

    def test_lookup_unknown_names_expected_class(self):
        """Unknown names report the class that was looked for."""
        with pytest.raises(UnknownBackendError, match="NotRealBackend") as exc_info:
            lookup_backend("not_real")

        assert exc_info.value.expected == "NotRealBackend"
        assert isinstance(exc_info.value, ConfigurationError)
        assert isinstance(exc_info.value, LookupError)

    def test_register_backend(self):
        """Registered classes become selectable by name."""

        @register_backend
        class SnakeCaseTestBackend(MemoryBackend):
            pass

        assert lookup_backend("snake_case_test") is SnakeCaseTestBackend

    def test_register_backend_requires_suffix(self):
        """Classes without the Backend suffix are refused."""
        with pytest.raises(ValueError, match="must end with 'Backend'"):

            @register_backend
            class Storage(MemoryBackend):
                pass


class TestGetBackend:
    """Tests for the global backend slot."""

    def setup_method(self):
        """Reset backend before each test."""
        reset_backend()

    def teardown_method(self):
        """Reset backend after each test."""
        reset_backend()

    def test_returns_memory_backend_by_default(self):
        """The default backend is the memory backend."""
        assert isinstance(get_backend(), MemoryBackend)

    def test_same_instance_returned(self):
        """Repeated calls return the same backend."""
        assert get_backend() is get_backend()

    def test_set_backend_by_name_creates_new_instance(self):
        """Selecting by name builds a fresh instance."""
        first = get_backend()

        backend = set_backend("memory")

        assert isinstance(backend, MemoryBackend)
        assert backend is not first
        assert get_backend() is backend

    def test_set_backend_adopts_conforming_instance(self):
        """A backend instance is used as-is."""
        backend = MemoryBackend()

        assert set_backend(backend) is backend
        assert get_backend() is backend

    def test_set_backend_adopts_duck_typed_object(self):
        """Any object with fetch and delete is accepted."""

        class DictStore:
            def __init__(self):
                self.data = {}

            def fetch(self, key, options, compute):
                return self.data.setdefault(key, compute())

            def delete(self, key):
                return self.data.pop(key, None) is not None

        store = DictStore()
        set_backend(store)

        assert get_backend() is store

    def test_set_backend_unknown_name(self):
        """An unknown name fails and keeps the current backend."""
        original = get_backend()

        with pytest.raises(UnknownBackendError, match="NotRealBackend"):
            set_backend("not_real")

        assert get_backend() is original

    def test_set_backend_rejects_non_conforming_object(self):
        """Objects without fetch and delete are refused."""
        with pytest.raises(InvalidBackendError):
            set_backend(object())

    def test_set_backend_rejects_backend_class(self):
        """A backend class is not adopted in place of an instance."""
        original = get_backend()

        with pytest.raises(InvalidBackendError):
            set_backend(MemoryBackend)

        assert get_backend() is original
        assert not is_cache_backend(MemoryBackend)

    def test_invalid_backend_is_type_error(self):
        """Invalid backends can be caught as TypeError."""
        with pytest.raises(TypeError):
            set_backend(42)

    def test_default_backend_from_settings(self, monkeypatch):
        """The first backend is built from the configured name."""
        from cacheable.config.settings import get_settings

        @register_backend
        class ConfiguredTestBackend(MemoryBackend):
            pass

        monkeypatch.setenv("CACHEABLE_DEFAULT_BACKEND", "configured_test")
        get_settings.cache_clear()

        assert isinstance(get_backend(), ConfiguredTestBackend)

    def test_unknown_default_backend_fails_on_first_use(self, monkeypatch):
        """A misconfigured default backend fails when first needed."""
        from cacheable.config.settings import get_settings

        monkeypatch.setenv("CACHEABLE_DEFAULT_BACKEND", "missing")
        get_settings.cache_clear()

        with pytest.raises(UnknownBackendError, match="MissingBackend"):
            get_backend()
