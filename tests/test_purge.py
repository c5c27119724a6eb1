"""Tests for the purge maintenance sweep."""

from pathlib import Path

from filecache.keys import path_for
from filecache.store import CacheStore


def entry_files(cache_dir: Path):
    return sorted(p.name for p in cache_dir.glob("*.cache"))


class TestPurge:
    """Test purge()."""

    def test_removes_only_expired(self, store, clock, temp_cache_dir):
        """Test that N entries with M expired leave exactly N - M files."""
        for i in range(3):
            store.set(f"expired{i}", i, ttl=5)
        for i in range(4):
            store.set(f"valid{i}", i, ttl=500)
        clock.advance(10)

        assert store.purge() is True

        expected = sorted(path_for(temp_cache_dir, f"valid{i}").name for i in range(4))
        assert entry_files(temp_cache_dir) == expected
        assert all(store.get(f"valid{i}") == i for i in range(4))

    def test_removes_corrupt_entries(self, store, temp_cache_dir):
        bad = path_for(temp_cache_dir, "bad")
        bad.write_bytes(b"garbage")
        store.set("good", 1)

        assert store.purge() is True

        assert not bad.exists()
        assert store.get("good") == 1

    def test_unrelated_files_are_ignored(self, store, clock, temp_cache_dir):
        """Test that only *.cache files are candidates for removal."""
        (temp_cache_dir / "notes.txt").write_text("not a cache entry")
        (temp_cache_dir / ".abc-123.tmp").write_bytes(b"in-flight write")
        (temp_cache_dir / "subdir.cache").mkdir()
        store.set("key", 1, ttl=1)
        clock.advance(5)

        assert store.purge() is True

        assert (temp_cache_dir / "notes.txt").read_text() == "not a cache entry"
        assert (temp_cache_dir / ".abc-123.tmp").exists()
        assert (temp_cache_dir / "subdir.cache").is_dir()
        assert entry_files(temp_cache_dir) == ["subdir.cache"]

    def test_undecodable_cache_file_is_removed(self, store, temp_cache_dir):
        """Test that any *.cache file that does not decode counts as corrupt."""
        stray = temp_cache_dir / "stray.cache"
        stray.write_text("hello")

        store.purge()

        assert not stray.exists()

    def test_entries_from_other_secret_are_removed(self, temp_cache_dir, clock):
        """Test that entries this store cannot decrypt are purged."""
        CacheStore(temp_cache_dir, "old-secret", clock=clock).set("key", 1)
        store = CacheStore(temp_cache_dir, "new-secret", clock=clock)

        store.purge()

        assert entry_files(temp_cache_dir) == []

    def test_empty_directory(self, store):
        assert store.purge() is True

    def test_purge_is_not_automatic(self, store, clock, temp_cache_dir):
        """Test that has() leaves expired files for purge to collect."""
        store.set("a", 1, ttl=1)
        store.set("b", 2, ttl=1)
        clock.advance(2)

        store.has("a")
        store.has("b")
        assert len(entry_files(temp_cache_dir)) == 2

        store.purge()
        assert entry_files(temp_cache_dir) == []
