"""
Encryption helpers for secrets persisted in the database.

OAuth tokens, connection configs and database credentials are wrapped with
AES-256-GCM before they are written. The stored form is
``hex(iv) + hex(tag) + hex(ciphertext)`` with a 16-byte IV and tag, and the
fixed associated data ``chat-message`` so rows written by earlier releases
stay readable.
"""

import hashlib
import json
import logging
import re
import secrets
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from insighter_server.config import get_settings

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
ASSOCIATED_DATA = b"chat-message"

_KEY_PATTERN = re.compile(r"^[a-fA-F0-9]{64}$")


class EncryptionError(Exception):
    """Raised when a payload cannot be encrypted or decrypted."""


def generate_encryption_key() -> str:
    """Generate a random key suitable for INSIGHTER_ENCRYPTION_KEY."""
    return secrets.token_bytes(KEY_LENGTH).hex()


def validate_encryption_key(key: str) -> bool:
    """Check that a key is 64 hex characters."""
    return bool(_KEY_PATTERN.match(key or ""))


def _get_key(key: str | None = None) -> bytes:
    key = key if key is not None else get_settings().encryption_key
    if not key:
        raise EncryptionError("INSIGHTER_ENCRYPTION_KEY is not configured")
    if not validate_encryption_key(key):
        raise EncryptionError("INSIGHTER_ENCRYPTION_KEY must be 64 hex characters (32 bytes)")
    return bytes.fromhex(key)


def encrypt_text(plaintext: str, key: str | None = None) -> str:
    """
    Encrypt a string.

    Args:
        plaintext: Text to encrypt
        key: Hex key, defaults to the configured encryption key

    Returns:
        Hex string of IV, tag and ciphertext
    """
    aesgcm = AESGCM(_get_key(key))
    iv = secrets.token_bytes(IV_LENGTH)
    # AESGCM appends the tag to the ciphertext
    sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), ASSOCIATED_DATA)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return iv.hex() + tag.hex() + ciphertext.hex()


def decrypt_text(encrypted: str, key: str | None = None) -> str:
    """
    Decrypt a string produced by :func:`encrypt_text`.

    Raises:
        EncryptionError: If the payload is malformed or fails authentication
    """
    aesgcm = AESGCM(_get_key(key))
    header = (IV_LENGTH + TAG_LENGTH) * 2
    try:
        iv = bytes.fromhex(encrypted[: IV_LENGTH * 2])
        tag = bytes.fromhex(encrypted[IV_LENGTH * 2 : header])
        ciphertext = bytes.fromhex(encrypted[header:])
    except (ValueError, TypeError) as e:
        raise EncryptionError("Encrypted payload is not valid hex") from e

    if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
        raise EncryptionError("Encrypted payload is truncated")

    try:
        plaintext = aesgcm.decrypt(iv, ciphertext + tag, ASSOCIATED_DATA)
    except InvalidTag as e:
        logger.error("Decryption failed: authentication tag mismatch")
        raise EncryptionError("Failed to decrypt payload") from e

    return plaintext.decode("utf-8")


def encrypt_object(obj: dict[str, Any], key: str | None = None) -> str:
    """Encrypt a JSON-serialisable dict."""
    return encrypt_text(json.dumps(obj), key)


def decrypt_object(encrypted: str, key: str | None = None) -> dict[str, Any]:
    """Decrypt a payload produced by :func:`encrypt_object`."""
    return json.loads(decrypt_text(encrypted, key))


def hash_for_index(data: str) -> str:
    """One-way SHA-256 hash for indexing sensitive values."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
