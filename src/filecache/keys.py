"""Cache key validation and entry file addressing."""

import hashlib
import re
from pathlib import Path
from typing import Any, Union

# Characters reserved by the generic cache key format
RESERVED_CHARACTERS = "{}()/\\@:"

ENTRY_SUFFIX = ".cache"

_RESERVED_PATTERN = re.compile(r"[{}()/\\@:]")


class InvalidKeyError(ValueError):
    """Raised when a cache key is not a legal key."""

    pass


def validate_key(key: Any) -> str:
    """Check that a key is a non-empty string without reserved characters.

    Args:
        key: Candidate cache key

    Returns:
        The key, unchanged

    Raises:
        InvalidKeyError: If the key is not a string, is empty, or contains
            any of ``{}()/\\@:``

    Examples:
        >>> validate_key("user.42")
        'user.42'
    """
    if not isinstance(key, str):
        raise InvalidKeyError(f"Cache key must be a string, got {type(key).__name__}")
    if key == "":
        raise InvalidKeyError("Cache key must not be empty")
    if _RESERVED_PATTERN.search(key):
        raise InvalidKeyError(f"Invalid cache key: {key!r}")
    return key


def hash_key(key: str) -> str:
    """Hex-encoded SHA-256 digest of a key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def path_for(cache_dir: Union[str, Path], key: Any) -> Path:
    """Get the entry file path for a key.

    The key is validated first, so an invalid key never produces a path.

    Args:
        cache_dir: Directory holding entry files
        key: Cache key

    Returns:
        ``cache_dir / <sha256(key)>.cache``

    Raises:
        InvalidKeyError: If the key is invalid
    """
    validate_key(key)
    return Path(cache_dir) / f"{hash_key(key)}{ENTRY_SUFFIX}"

