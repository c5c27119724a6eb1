"""Cache configuration management."""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from filecache.envelope import DEFAULT_CIPHER, DEFAULT_SERIALIZER

DEFAULT_CACHE_DIR = Path.home() / ".filecache"


@dataclass(frozen=True)
class CacheConfig:
    """Immutable configuration for a CacheStore.

    Attributes:
        cache_dir: Directory holding entry files (created if missing)
        encryption_key: Secret used to derive the encryption key. Empty
            disables encryption.
        default_ttl: TTL in seconds used when a write gives none (1 hour).
            Any integer is accepted here, including zero or negative values.
        cipher: OpenSSL-style cipher name, e.g. 'aes-256-cbc'
        serializer: Payload serializer ('pickle' or 'json')
    """

    cache_dir: Path = DEFAULT_CACHE_DIR
    encryption_key: str = field(default="", repr=False)
    default_ttl: int = 3600  # 1 hour
    cipher: str = DEFAULT_CIPHER
    serializer: str = DEFAULT_SERIALIZER

    def __post_init__(self):
        """Normalize cache_dir to an expanded Path."""
        if self.cache_dir is None:
            cache_dir = DEFAULT_CACHE_DIR
        else:
            cache_dir = Path(self.cache_dir).expanduser()
        # Frozen dataclass, so bypass __setattr__ for normalization
        object.__setattr__(self, "cache_dir", cache_dir)
        object.__setattr__(self, "default_ttl", int(self.default_ttl))
        object.__setattr__(self, "encryption_key", self.encryption_key or "")

    @property
    def encrypted(self) -> bool:
        return bool(self.encryption_key)

    def evolve(self, **changes) -> "CacheConfig":
        """Return a copy with some fields changed."""
        return replace(self, **changes)

    @classmethod
    def load(cls, config_path: Path) -> "CacheConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to config file

        Returns:
            CacheConfig instance (defaults if the file does not exist)
        """
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to a JSON file.

        The encryption secret is never written.

        Args:
            config_path: Path to config file. If None, uses
                ``cache_dir/config.json``.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.json"
        config_path = Path(config_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "default_ttl": self.default_ttl,
            "cipher": self.cipher,
            "serializer": self.serializer,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            FILECACHE_DIR: Cache directory path
            FILECACHE_SECRET: Encryption secret
            FILECACHE_TTL: Default TTL in seconds
            FILECACHE_CIPHER: Cipher name
            FILECACHE_SERIALIZER: Serializer name

        Returns:
            CacheConfig instance
        """
        changes = {}

        if os.getenv("FILECACHE_DIR"):
            changes["cache_dir"] = Path(os.getenv("FILECACHE_DIR"))

        if os.getenv("FILECACHE_SECRET"):
            changes["encryption_key"] = os.getenv("FILECACHE_SECRET")

        if os.getenv("FILECACHE_TTL"):
            changes["default_ttl"] = int(os.getenv("FILECACHE_TTL"))

        if os.getenv("FILECACHE_CIPHER"):
            changes["cipher"] = os.getenv("FILECACHE_CIPHER")

        if os.getenv("FILECACHE_SERIALIZER"):
            changes["serializer"] = os.getenv("FILECACHE_SERIALIZER")

        return cls(**changes)
