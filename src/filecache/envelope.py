"""Serialization and optional encryption of cache entry payloads.

An entry is the mapping ``{"value": ..., "expiration": ...}``. In plaintext
mode the serialized mapping is written as-is. In encrypted mode the file
holds ``base64(IV || ciphertext)``, with a fresh random IV for every write.

Whether a file is encrypted is not recorded in it; it must be decoded with
the same secret and cipher it was encoded with.
"""

import base64
import binascii
import hashlib
import json
import os
import pickle
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple, Type

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from filecache.expiration import coerce_expiration

DEFAULT_CIPHER = "aes-256-cbc"
DEFAULT_SERIALIZER = "pickle"

# AES block size in bytes, which is also the IV length for every mode below
IV_LENGTH = algorithms.AES.block_size // 8


class EnvelopeError(Exception):
    """Base exception for entry payloads that cannot be encoded or decoded."""

    pass


class FramingError(EnvelopeError):
    """Raised when the outer base64/IV framing is malformed."""

    pass


class EncryptionError(EnvelopeError):
    """Raised when a payload cannot be encrypted."""

    pass


class DecryptionError(EnvelopeError):
    """Raised when ciphertext cannot be decrypted with the current key."""

    pass


class DeserializationError(EnvelopeError):
    """Raised when decrypted bytes are not a valid serialized payload."""

    pass


class StructureError(EnvelopeError):
    """Raised when a payload lacks the value/expiration fields."""

    pass


class ContextClosedError(EnvelopeError):
    """Raised when an encrypted payload is handled after the key was wiped.

    Says nothing about the payload itself, so stored entries must not be
    treated as corrupt because of it.
    """

    pass


class UnsupportedCipherError(ValueError):
    """Raised for cipher names the crypto provider does not support."""

    pass


@dataclass(frozen=True)
class CipherSpec:
    """How to build one named cipher."""

    name: str
    key_size: int
    mode: Type[modes.Mode]
    padded: bool


def _build_cipher_table() -> Dict[str, CipherSpec]:
    table = {}
    for bits in (128, 192, 256):
        for mode_name, mode, padded in (
            ("cbc", modes.CBC, True),
            ("ctr", modes.CTR, False),
        ):
            name = f"aes-{bits}-{mode_name}"
            table[name] = CipherSpec(name, bits // 8, mode, padded)
    return table


SUPPORTED_CIPHERS: Dict[str, CipherSpec] = _build_cipher_table()


def get_cipher_spec(name: str) -> CipherSpec:
    """Look up a cipher by its OpenSSL-style name (e.g. ``aes-256-cbc``).

    The name must be in ``SUPPORTED_CIPHERS`` and the installed crypto
    backend must actually provide it.

    Raises:
        UnsupportedCipherError: If the cipher is unknown or unavailable
    """
    normalized = str(name).strip().lower()
    spec = SUPPORTED_CIPHERS.get(normalized)
    if spec is None:
        raise UnsupportedCipherError(
            f"Unsupported cipher: {name!r}. "
            f"Supported: {', '.join(sorted(SUPPORTED_CIPHERS))}"
        )

    try:
        Cipher(
            algorithms.AES(bytes(spec.key_size)), spec.mode(bytes(IV_LENGTH))
        ).encryptor()
    except UnsupportedAlgorithm as e:
        raise UnsupportedCipherError(
            f"Cipher {normalized} is not available from the crypto backend"
        ) from e

    return spec


class EncryptionContext:
    """Derived key material plus the cipher used with it.

    The key is SHA-256 of the secret, truncated to the cipher's key size.
    An empty secret disables encryption and makes the context a passthrough.

    The key lives in a ``bytearray`` that ``close()`` overwrites with zeros.
    Use the context as a ``with`` block, or call ``close()`` explicitly, to
    release it at a known point.
    """

    def __init__(self, secret: str = "", cipher: str = DEFAULT_CIPHER):
        self.spec = get_cipher_spec(cipher)
        self._enabled = bool(secret)
        self._closed = False
        if self._enabled:
            digest = hashlib.sha256(secret.encode("utf-8")).digest()
            self._key = bytearray(digest[: self.spec.key_size])
        else:
            self._key = bytearray()

    @property
    def cipher(self) -> str:
        return self.spec.name

    @property
    def enabled(self) -> bool:
        """True if payloads are encrypted."""
        return self._enabled

    @property
    def closed(self) -> bool:
        return self._closed

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(bytes(self._key)), self.spec.mode(iv))

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt bytes and return ``base64(IV || ciphertext)``."""
        if not self._enabled:
            return data
        if self._closed:
            raise ContextClosedError("Encryption context has been closed")

        iv = os.urandom(IV_LENGTH)
        try:
            if self.spec.padded:
                padder = padding.PKCS7(algorithms.AES.block_size).padder()
                data = padder.update(data) + padder.finalize()
            encryptor = self._cipher(iv).encryptor()
            ciphertext = encryptor.update(data) + encryptor.finalize()
        except ValueError as e:
            raise EncryptionError(f"Encryption failed: {e}") from e

        return base64.b64encode(iv + ciphertext)

    def decrypt(self, data: bytes) -> bytes:
        """Reverse ``encrypt``.

        Raises:
            FramingError: If the data is not base64 or is shorter than an IV
            DecryptionError: If the ciphertext does not decrypt cleanly
            ContextClosedError: If the key has been wiped by close()
        """
        if not self._enabled:
            return data
        if self._closed:
            raise ContextClosedError("Encryption context has been closed")

        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FramingError(f"Payload is not valid base64: {e}") from e

        if len(raw) < IV_LENGTH:
            raise FramingError(
                f"Payload too short for decryption ({len(raw)} < {IV_LENGTH} bytes)"
            )

        iv, ciphertext = raw[:IV_LENGTH], raw[IV_LENGTH:]
        try:
            decryptor = self._cipher(iv).decryptor()
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
            if self.spec.padded:
                unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
                plaintext = unpadder.update(plaintext) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionError(f"Decryption failed: {e}") from e

        return plaintext

    def close(self) -> None:
        """Zero the key material. Idempotent."""
        for i in range(len(self._key)):
            self._key[i] = 0
        self._closed = True

    def __enter__(self) -> "EncryptionContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"EncryptionContext(cipher={self.cipher!r}, "
            f"enabled={self._enabled}, {state})"
        )


def _json_dumps(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _json_loads(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


# pickle round-trips arbitrary Python objects but must only be used on a
# cache directory that nobody else can write to
SERIALIZERS: Dict[str, Tuple[Callable[[Any], bytes], Callable[[bytes], Any]]] = {
    "pickle": (
        lambda obj: pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL),
        pickle.loads,
    ),
    "json": (_json_dumps, _json_loads),
}


class Envelope:
    """Encode/decode pipeline: serialize, then optionally encrypt."""

    def __init__(
        self,
        context: EncryptionContext,
        serializer: str = DEFAULT_SERIALIZER,
    ):
        """Initialize envelope.

        Args:
            context: Encryption context (may be disabled)
            serializer: Name of a serializer in ``SERIALIZERS``

        Raises:
            ValueError: If the serializer is unknown
        """
        if serializer not in SERIALIZERS:
            raise ValueError(
                f"Unknown serializer: {serializer!r}. "
                f"Available: {', '.join(sorted(SERIALIZERS))}"
            )
        self.context = context
        self.serializer = serializer
        self._dumps, self._loads = SERIALIZERS[serializer]

    def encode(self, value: Any, expiration: int) -> bytes:
        """Serialize and encrypt an entry.

        Raises:
            EnvelopeError: If the value cannot be serialized or encrypted
        """
        try:
            serialized = self._dumps({"value": value, "expiration": int(expiration)})
        except Exception as e:
            raise EnvelopeError(f"Cannot serialize value: {e}") from e

        return self.context.encrypt(serialized)

    def decode(self, data: bytes) -> Tuple[Any, int]:
        """Decrypt and deserialize an entry.

        Returns:
            Tuple of (value, expiration)

        Raises:
            FramingError: Outer framing is malformed
            DecryptionError: Ciphertext does not decrypt
            ContextClosedError: The encryption context was closed
            DeserializationError: Bytes are not a serialized payload
            StructureError: Payload is not an entry mapping
        """
        serialized = self.context.decrypt(data)

        try:
            payload = self._loads(serialized)
        except Exception as e:
            raise DeserializationError(f"Cannot deserialize payload: {e}") from e

        if not isinstance(payload, dict) or not {"value", "expiration"} <= set(payload):
            raise StructureError("Payload is missing 'value' or 'expiration'")

        expiration = coerce_expiration(payload["expiration"])
        if expiration is None:
            raise StructureError(
                f"Invalid expiration: {type(payload['expiration']).__name__}"
            )

        return payload["value"], expiration
