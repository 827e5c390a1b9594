"""
AES-256-GCM encryption for tenant secrets.

The operator supplies one master key (base64 of 32 bytes, or any string which
is then hashed with SHA-256). Each record gets a fresh 12-byte nonce and a
16-byte tag; the tenant identity is bound as associated data so a record
moved into another tenant's slot fails authentication.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import secrets
from functools import lru_cache
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from dashvault.errors import ServerMisconfigured, TamperedOrCorrupt
from dashvault.vault.models import EncryptedSecretRecord

logger = logging.getLogger(__name__)

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16


def derive_key(raw_master_key: str | None) -> bytes:
    """Normalize an operator-supplied master key to exactly 32 bytes.

    A value that base64-decodes to 32 bytes is used as-is; anything else is
    hashed with SHA-256. Raises ServerMisconfigured when the key is missing.
    """
    if not raw_master_key:
        raise ServerMisconfigured("Encryption key not configured (DASHVAULT_MASTER_KEY).")
    try:
        decoded = base64.b64decode(raw_master_key, validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    if len(decoded) == KEY_BYTES:
        return decoded
    return hashlib.sha256(raw_master_key.encode("utf-8")).digest()


@lru_cache(maxsize=4)
def _cached_key(raw_master_key: str) -> bytes:
    return derive_key(raw_master_key)


def master_key(raw_master_key: str | None) -> bytes:
    """Derive (and cache) the key for a configured master key string."""
    if not raw_master_key:
        logger.error("Master encryption key is not configured; refusing vault operation")
        raise ServerMisconfigured("Encryption key not configured (DASHVAULT_MASTER_KEY).")
    return _cached_key(raw_master_key)


def reset_key_cache() -> None:
    """Clear the derived-key cache (for testing)."""
    _cached_key.cache_clear()


def generate_master_key() -> str:
    """Return a new random master key, base64 encoded."""
    return base64.b64encode(secrets.token_bytes(KEY_BYTES)).decode("ascii")


def _aad(associated_data: str | None) -> bytes | None:
    return associated_data.encode("utf-8") if associated_data is not None else None


def encrypt_payload(
    key: bytes,
    payload: Any,
    *,
    associated_data: str | None = None,
) -> EncryptedSecretRecord:
    """Serialize ``payload`` as JSON and encrypt it with AES-256-GCM."""
    if len(key) != KEY_BYTES:
        raise ServerMisconfigured(f"Encryption key must be {KEY_BYTES} bytes")
    nonce = secrets.token_bytes(NONCE_BYTES)
    plaintext = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    sealed = AESGCM(key).encrypt(nonce, plaintext, _aad(associated_data))
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return EncryptedSecretRecord(
        initialization_vector=nonce.hex(),
        authentication_tag=tag.hex(),
        ciphertext=ciphertext.hex(),
    )


def decrypt_payload(
    key: bytes,
    record: EncryptedSecretRecord,
    *,
    associated_data: str | None = None,
) -> Any:
    """Verify and decrypt a record back to its JSON value.

    Any authentication or decoding failure raises TamperedOrCorrupt; no part
    of the plaintext is returned in that case.
    """
    if len(key) != KEY_BYTES:
        raise ServerMisconfigured(f"Encryption key must be {KEY_BYTES} bytes")
    try:
        nonce = bytes.fromhex(record.initialization_vector)
        tag = bytes.fromhex(record.authentication_tag)
        ciphertext = bytes.fromhex(record.ciphertext)
        if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
            raise ValueError("unexpected nonce or tag length")
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, _aad(associated_data))
        return json.loads(plaintext.decode("utf-8"))
    except (InvalidTag, ValueError) as e:
        # Only the exception type is logged; the record content stays out of logs.
        logger.error("Secret record failed authentication (%s)", type(e).__name__)
        raise TamperedOrCorrupt("Stored credentials failed integrity check") from None
