"""
Unit tests for core/cache - EntryCache and cache keys
"""
import pytest

from core.cache import EntryCache, compute_entry_key


class TestComputeEntryKey:
    """Test cache key generation."""

    def test_normalizes_case_and_whitespace(self):
        assert compute_entry_key("Hello", "French") == compute_entry_key("  hello ", "french")

    def test_target_language_changes_key(self):
        assert compute_entry_key("Hello", "French") != compute_entry_key("Hello", "German")

    def test_instructions_change_key(self):
        assert compute_entry_key("Hello", "French") != compute_entry_key("Hello", "French", "Be formal")


class TestEntryCache:
    """Test EntryCache."""

    def test_get_set(self):
        cache = EntryCache(max_size=10)
        assert cache.get("k") is None
        cache.set("k", "v")
        assert cache.get("k") == "v"

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.writes == 1

    def test_evicts_oldest_tenth_when_full(self):
        cache = EntryCache(max_size=20)
        for i in range(20):
            cache.set(f"k{i}", str(i))

        cache.set("new", "x")

        assert len(cache) == 19
        assert "k0" not in cache and "k1" not in cache
        assert "k2" in cache
        assert cache.stats().evictions == 2

    def test_recently_used_survives_eviction(self):
        cache = EntryCache(max_size=3)
        cache.set("a", "1")
        cache.set("b", "2")
        cache.set("c", "3")
        cache.get("a")

        cache.set("d", "4")

        assert "a" in cache
        assert "b" not in cache

    def test_delete_and_clear(self):
        cache = EntryCache(max_size=5)
        cache.set("a", "1")
        cache.set("b", "2")

        assert cache.delete("a")
        assert not cache.delete("a")
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_entry_helpers(self):
        cache = EntryCache(max_size=5)
        cache.store("Hello", "French", "Bonjour")
        assert cache.lookup("hello", "French") == "Bonjour"
        assert cache.lookup("Hello", "French", instructions="formal") is None

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            EntryCache(max_size=0)
