"""filecache: File-backed key/value cache with per-entry TTL and optional encryption."""

__version__ = "0.1.0"

from filecache.base import SimpleCache
from filecache.config import CacheConfig
from filecache.envelope import (
    SUPPORTED_CIPHERS,
    ContextClosedError,
    EncryptionContext,
    Envelope,
    EnvelopeError,
    UnsupportedCipherError,
)
from filecache.keys import InvalidKeyError
from filecache.store import (
    CacheError,
    CacheStore,
    DirectoryUnwritableError,
    Lookup,
    ReadOutcome,
)

__all__ = [
    "CacheStore",
    "CacheConfig",
    "SimpleCache",
    "Lookup",
    "ReadOutcome",
    "EncryptionContext",
    "Envelope",
    "SUPPORTED_CIPHERS",
    "CacheError",
    "DirectoryUnwritableError",
    "EnvelopeError",
    "ContextClosedError",
    "InvalidKeyError",
    "UnsupportedCipherError",
    "__version__",
]
