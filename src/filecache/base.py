"""Generic cache interface.

This module defines the abstract base class a host application codes
against. ``CacheStore`` is the filesystem implementation; other backends
only need to provide the single-key operations; the bulk operations have
default implementations built on top of them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping, Union

from filecache.expiration import TTL


class SimpleCache(ABC):
    """Abstract key/value cache with per-entry TTL.

    Keys are strings that must not contain any of ``{}()/\\@:``. Reads
    never raise for a valid key: a missing, expired or unreadable entry
    looks the same to callers (the default value, or False).

    Examples:
        >>> cache.set("greeting", "hello", ttl=60)
        True
        >>> cache.get("greeting")
        'hello'
        >>> cache.get("missing", default="n/a")
        'n/a'
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for key, or default on a miss."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: TTL = None) -> bool:
        """Store a value; ttl is seconds or a timedelta, None for the default."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove an entry. Deleting a missing key succeeds."""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Remove every entry."""
        pass

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check whether a live entry exists, without evicting anything."""
        pass

    def get_multiple(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        """Return a mapping of each key to its value (or default)."""
        return {key: self.get(key, default) for key in keys}

    def set_multiple(
        self,
        values: Union[Mapping[str, Any], Iterable],
        ttl: TTL = None,
    ) -> bool:
        """Store several values with one TTL; True only if every write succeeded.

        A failing pair does not stop the remaining writes.
        """
        items = values.items() if isinstance(values, Mapping) else values
        success = True
        for key, value in items:
            if not self.set(key, value, ttl):
                success = False
        return success

    def delete_multiple(self, keys: Iterable[str]) -> bool:
        """Delete several keys; True only if every delete succeeded."""
        success = True
        for key in keys:
            if not self.delete(key):
                success = False
        return success
