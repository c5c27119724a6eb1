"""Shared fixtures for filecache tests."""

import tempfile
from pathlib import Path

import pytest

from filecache.store import CacheStore


class FakeClock:
    """Manually advanced clock for expiration tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_cache_dir():
    """Create temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "cache"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(temp_cache_dir, clock):
    """Plaintext cache store on a fake clock."""
    return CacheStore(temp_cache_dir, default_ttl=3600, clock=clock)


@pytest.fixture
def encrypted_store(temp_cache_dir, clock):
    """Encrypted cache store on a fake clock."""
    with CacheStore(
        temp_cache_dir, encryption_key="s3cret", default_ttl=3600, clock=clock
    ) as store:
        yield store

