"""Filesystem cache engine.

One file per key, named ``<sha256(key)>.cache``, in a single flat
directory. Nothing is kept in memory between calls: every read goes to
disk. The public operations never raise for a valid key; failures are
logged and reported as a miss or ``False``. ``lookup()`` exposes the
reason behind a miss for diagnostics and tests.
"""

import errno
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from filecache.base import SimpleCache
from filecache.config import CacheConfig
from filecache.envelope import (
    DEFAULT_CIPHER,
    DEFAULT_SERIALIZER,
    EncryptionContext,
    Envelope,
    ContextClosedError,
    EnvelopeError,
    get_cipher_spec,
)
from filecache.expiration import TTL, get_ttl_remaining, is_expired, resolve_expiration
from filecache.keys import ENTRY_SUFFIX, InvalidKeyError, path_for, validate_key

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Base exception for cache-related errors."""

    pass


class DirectoryUnwritableError(CacheError):
    """Raised when the cache directory cannot be created or written to."""

    pass


class ReadOutcome(Enum):
    """Why a read produced (or did not produce) a value.

    HIT: file present, decoded, unexpired
    MISSING: no file for the key
    EXPIRED: file decoded but its expiration has passed
    CORRUPT: file present but could not be decoded
    IO_ERROR: file present but could not be read
    UNAVAILABLE: file present but the store can no longer decrypt (closed)
    """

    HIT = "hit"
    MISSING = "missing"
    EXPIRED = "expired"
    CORRUPT = "corrupt"
    IO_ERROR = "io_error"
    UNAVAILABLE = "unavailable"


@dataclass
class Lookup:
    """Result of reading one entry file."""

    path: Path
    outcome: ReadOutcome
    value: Any = None
    expiration: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def hit(self) -> bool:
        return self.outcome is ReadOutcome.HIT

    @property
    def stale(self) -> bool:
        """True for entries that should be evicted (expired or corrupt)."""
        return self.outcome in (ReadOutcome.EXPIRED, ReadOutcome.CORRUPT)


class CacheStore(SimpleCache):
    """File-backed key/value cache with TTL and optional encryption.

    Single-process and synchronous. Writes go through a temp file and an
    atomic rename, so readers never see a half-written entry. Concurrent
    writers to the same key are not coordinated; the last rename wins.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        encryption_key: str = "",
        default_ttl: int = 3600,
        *,
        cipher: str = DEFAULT_CIPHER,
        serializer: str = DEFAULT_SERIALIZER,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize cache store.

        Args:
            cache_dir: Directory for entry files, created if missing
            encryption_key: Secret for payload encryption ('' disables it)
            default_ttl: Seconds applied when a write gives no TTL. Any
                integer is accepted, including values that make every entry
                expire immediately.
            cipher: OpenSSL-style cipher name
            serializer: 'pickle' or 'json'
            clock: Callable returning the current time in seconds since
                the epoch (defaults to ``time.time``)

        Raises:
            DirectoryUnwritableError: If the directory cannot be created or
                is not writable
            UnsupportedCipherError: If the cipher is not supported
            ValueError: If the serializer is unknown
        """
        self.config = CacheConfig(
            cache_dir=cache_dir,
            encryption_key=encryption_key,
            default_ttl=default_ttl,
            cipher=cipher,
            serializer=serializer,
        )
        self.cache_dir = self.config.cache_dir
        self._clock = clock or time.time

        self._ensure_directory()

        self._context = EncryptionContext(
            self.config.encryption_key, self.config.cipher
        )
        self._envelope = Envelope(self._context, self.config.serializer)

    @classmethod
    def from_config(
        cls,
        config: CacheConfig,
        clock: Optional[Callable[[], float]] = None,
    ) -> "CacheStore":
        """Create a store from a CacheConfig."""
        return cls(
            config.cache_dir,
            config.encryption_key,
            config.default_ttl,
            cipher=config.cipher,
            serializer=config.serializer,
            clock=clock,
        )

    def _ensure_directory(self) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryUnwritableError(
                f"Cannot create cache directory at {self.cache_dir}: {e}"
            ) from e

        if not self.cache_dir.is_dir() or not os.access(
            self.cache_dir, os.W_OK | os.X_OK
        ):
            raise DirectoryUnwritableError(
                f"Cache directory must be a writable directory: {self.cache_dir}"
            )

    @property
    def default_ttl(self) -> int:
        return self.config.default_ttl

    @property
    def cipher(self) -> str:
        return self._context.cipher

    @property
    def encrypted(self) -> bool:
        return self._context.enabled

    def _now(self) -> float:
        return self._clock()

    # ==================== Reconfiguration ====================

    def with_default_ttl(self, default_ttl: int) -> "CacheStore":
        """Return a new store over the same directory with another default TTL.

        Existing entries keep their stored expiration.

        Raises:
            ValueError: If default_ttl is negative
        """
        if isinstance(default_ttl, bool) or not isinstance(default_ttl, int):
            raise ValueError(f"Default TTL must be an integer, got {default_ttl!r}")
        if default_ttl < 0:
            raise ValueError(f"Default TTL must be non-negative, got {default_ttl}")
        return self.from_config(
            self.config.evolve(default_ttl=default_ttl), clock=self._clock
        )

    def with_cipher(self, cipher: str) -> "CacheStore":
        """Return a new store over the same directory using another cipher.

        Entries encrypted under the old cipher will read as misses.

        Raises:
            UnsupportedCipherError: If the cipher is not supported
        """
        spec = get_cipher_spec(cipher)
        return self.from_config(self.config.evolve(cipher=spec.name), clock=self._clock)

    # ==================== Internal file operations ====================

    def _entry_files(self) -> List[Path]:
        """List entry files in the cache directory.

        Only ``*.cache`` regular files are entries; anything else placed in
        the directory (including in-flight temp files) is left alone.
        """
        return sorted(p for p in self.cache_dir.glob(f"*{ENTRY_SUFFIX}") if p.is_file())

    def _read(self, path: Path, now: Optional[float] = None) -> Lookup:
        """Read and classify one entry file."""
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return Lookup(path, ReadOutcome.MISSING)
        except OSError as e:
            logger.warning(f"Cannot read cache file {path}: {e}")
            return Lookup(path, ReadOutcome.IO_ERROR, error=e)

        try:
            value, expiration = self._envelope.decode(data)
        except ContextClosedError as e:
            return Lookup(path, ReadOutcome.UNAVAILABLE, error=e)
        except EnvelopeError as e:
            logger.debug(f"Corrupt cache file {path}: {type(e).__name__}: {e}")
            return Lookup(path, ReadOutcome.CORRUPT, error=e)

        if now is None:
            now = self._now()
        if is_expired(expiration, now):
            return Lookup(path, ReadOutcome.EXPIRED, expiration=expiration)

        return Lookup(path, ReadOutcome.HIT, value=value, expiration=expiration)

    def _write(self, path: Path, data: bytes) -> None:
        """Write data to path via a temp file and atomic rename."""
        fd, temp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{path.stem[:16]}-", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_path, path)
        except BaseException:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                logger.warning(
                    f"Failed to clean up temp file {temp_path}: {cleanup_error}"
                )
            raise

    def _unlink(self, path: Path) -> bool:
        """Remove a file; a file that is already gone counts as removed."""
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Cannot remove cache file {path}: {e}")
            return False
        return True

    # ==================== Public operations ====================

    def lookup(self, key: str) -> Lookup:
        """Read an entry and report why it is or is not usable.

        Like ``has()``, this never deletes anything.

        Raises:
            InvalidKeyError: If the key is invalid
        """
        return self._read(path_for(self.cache_dir, key))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value.

        An expired entry is deleted before the default is returned. A
        corrupt or undecryptable entry is treated as a miss.

        Args:
            key: Cache key
            default: Value returned on a miss

        Returns:
            The cached value, or default

        Raises:
            InvalidKeyError: If the key is invalid
        """
        path = path_for(self.cache_dir, key)
        result = self._read(path)

        if result.hit:
            return result.value

        if result.outcome is ReadOutcome.EXPIRED:
            logger.debug(f"Evicting expired entry {key!r}")
            self._unlink(path)

        return default

    def set(self, key: str, value: Any, ttl: TTL = None) -> bool:
        """Store a value.

        Args:
            key: Cache key
            value: Value to cache (must be serializable)
            ttl: Seconds or timedelta from now; None uses the default TTL.
                Zero or negative values write an already-expired entry.

        Returns:
            True if the entry was written

        Raises:
            InvalidKeyError: If the key is invalid
        """
        path = path_for(self.cache_dir, key)

        try:
            expiration = resolve_expiration(ttl, self._now(), self.config.default_ttl)
            data = self._envelope.encode(value, expiration)
        except (EnvelopeError, TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Cannot encode cache entry {key!r}: {e}")
            return False

        try:
            self._write(path, data)
        except OSError as e:
            if e.errno == errno.ENOSPC:
                logger.error(f"Disk full while writing {key!r} to cache")
            else:
                logger.warning(f"Cannot write cache file {path}: {e}")
            return False

        return True

    def delete(self, key: str) -> bool:
        """Delete an entry. A missing entry counts as deleted.

        Raises:
            InvalidKeyError: If the key is invalid
        """
        return self._unlink(path_for(self.cache_dir, key))

    def has(self, key: str) -> bool:
        """Check for a live entry. Unlike ``get()``, never evicts.

        Raises:
            InvalidKeyError: If the key is invalid
        """
        return self.lookup(key).hit

    def clear(self) -> bool:
        """Remove every entry file.

        Keeps going after a failed removal.

        Returns:
            True if every entry was removed
        """
        try:
            files = self._entry_files()
        except OSError as e:
            logger.warning(f"Cannot list cache directory {self.cache_dir}: {e}")
            return False

        success = True
        for path in files:
            if not self._unlink(path):
                success = False
        return success

    def get_multiple(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        """Get several values at once.

        Every key is validated before any file is read. Expired and corrupt
        entries are deleted.

        Returns:
            Dict mapping each key to its value or default

        Raises:
            InvalidKeyError: If any key is invalid
        """
        keys = self._validate_keys(keys)
        now = self._now()

        results = {}
        for key in keys:
            result = self._read(path_for(self.cache_dir, key), now)
            if result.hit:
                results[key] = result.value
                continue
            if result.stale:
                self._unlink(result.path)
            results[key] = default

        return results

    def set_multiple(
        self,
        values: Union[Mapping[str, Any], Iterable],
        ttl: TTL = None,
    ) -> bool:
        """Store several values with one shared TTL.

        An invalid key or failed write is recorded and the remaining pairs
        are still written; nothing is rolled back.

        Args:
            values: Mapping of key to value, or iterable of (key, value) pairs
            ttl: TTL applied to every entry

        Returns:
            True only if every pair was written
        """
        items = values.items() if isinstance(values, Mapping) else values

        success = True
        for key, value in items:
            try:
                if not self.set(key, value, ttl):
                    success = False
            except InvalidKeyError as e:
                logger.warning(f"Skipping entry in set_multiple: {e}")
                success = False
        return success

    def delete_multiple(self, keys: Iterable[str]) -> bool:
        """Delete several keys; invalid keys are recorded as failures.

        Returns:
            True only if every key was deleted
        """
        if isinstance(keys, (str, bytes)):
            raise InvalidKeyError("Keys must be an iterable of keys, not a string")

        success = True
        for key in keys:
            try:
                if not self.delete(key):
                    success = False
            except InvalidKeyError as e:
                logger.warning(f"Skipping key in delete_multiple: {e}")
                success = False
        return success

    def purge(self) -> bool:
        """Delete expired, corrupt and unreadable entry files.

        Only ``*.cache`` files are swept; unrelated files in the directory
        are never touched. Intended for periodic maintenance.

        Returns:
            True if every stale entry was removed. False if any removal
            failed or the store was closed and could not check its entries.
        """
        try:
            files = self._entry_files()
        except OSError as e:
            logger.warning(f"Cannot list cache directory {self.cache_dir}: {e}")
            return False

        now = self._now()
        success = True
        removed = 0
        for path in files:
            result = self._read(path, now)
            if result.outcome in (ReadOutcome.HIT, ReadOutcome.MISSING):
                continue
            if result.outcome is ReadOutcome.UNAVAILABLE:
                # Closed store: the entry cannot be judged, so keep it
                success = False
                continue
            if self._unlink(path):
                removed += 1
            else:
                success = False

        logger.info(f"Purged {removed} of {len(files)} cache files in {self.cache_dir}")
        return success

    def ttl_remaining(self, key: str) -> Optional[int]:
        """Seconds until an entry expires.

        Returns:
            Remaining seconds, 0 if expired, None if missing or unreadable

        Raises:
            InvalidKeyError: If the key is invalid
        """
        result = self.lookup(key)
        if result.hit:
            return get_ttl_remaining(result.expiration, self._now())
        if result.outcome is ReadOutcome.EXPIRED:
            return 0
        return None

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics by scanning the directory.

        Returns:
            Statistics dict
        """
        stats = {
            "cache_dir": str(self.cache_dir),
            "entries": 0,
            "valid": 0,
            "expired": 0,
            "corrupt": 0,
            "unavailable": 0,
            "total_size_bytes": 0,
            "default_ttl": self.config.default_ttl,
            "cipher": self.cipher,
            "encrypted": self.encrypted,
        }

        try:
            files = self._entry_files()
        except OSError as e:
            logger.warning(f"Cannot list cache directory {self.cache_dir}: {e}")
            return stats

        now = self._now()
        for path in files:
            result = self._read(path, now)
            if result.outcome is ReadOutcome.MISSING:
                continue
            stats["entries"] += 1
            if result.hit:
                stats["valid"] += 1
            elif result.outcome is ReadOutcome.EXPIRED:
                stats["expired"] += 1
            elif result.outcome is ReadOutcome.UNAVAILABLE:
                stats["unavailable"] += 1
            else:
                stats["corrupt"] += 1
            try:
                stats["total_size_bytes"] += path.stat().st_size
            except OSError:
                pass

        return stats

    @staticmethod
    def _validate_keys(keys: Iterable[str]) -> List[str]:
        if isinstance(keys, (str, bytes)):
            raise InvalidKeyError("Keys must be an iterable of keys, not a string")
        return [validate_key(key) for key in keys]

    # ==================== Lifecycle ====================

    @property
    def closed(self) -> bool:
        return self._context.closed

    def close(self) -> None:
        """Zero the encryption key. The store cannot encrypt or decrypt afterwards."""
        self._context.close()

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"CacheStore(cache_dir={str(self.cache_dir)!r}, "
            f"default_ttl={self.config.default_ttl}, "
            f"encrypted={self.encrypted})"
        )
