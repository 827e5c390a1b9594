"""Tests for vault crypto operations."""

import base64
import hashlib
import secrets

import pytest

from dashvault.errors import ServerMisconfigured, TamperedOrCorrupt
from dashvault.vault.crypto import (
    NONCE_BYTES,
    TAG_BYTES,
    decrypt_payload,
    derive_key,
    encrypt_payload,
    generate_master_key,
    master_key,
)


def _flip_first_hex(value: str) -> str:
    first = int(value[0], 16) ^ 0x1
    return f"{first:x}{value[1:]}"


class TestEncryptDecrypt:
    def test_roundtrip(self):
        key = secrets.token_bytes(32)
        payload = {"url": "https://abc.supabase.co", "apiKey": "k" * 40}
        record = encrypt_payload(key, payload, associated_data="user-1")
        assert decrypt_payload(key, record, associated_data="user-1") == payload

    def test_record_shape(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, {"a": 1})
        assert len(bytes.fromhex(record.initialization_vector)) == NONCE_BYTES
        assert len(bytes.fromhex(record.authentication_tag)) == TAG_BYTES
        assert record.created_at.tzinfo is not None

    def test_different_nonces(self):
        key = secrets.token_bytes(32)
        a = encrypt_payload(key, "same")
        b = encrypt_payload(key, "same")
        assert a.initialization_vector != b.initialization_vector
        assert a.ciphertext != b.ciphertext

    def test_plaintext_not_in_record(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, {"apiKey": "super-secret-value"})
        stored = str(record.to_storage())
        assert "super-secret-value" not in stored
        assert "super-secret-value".encode().hex() not in stored

    def test_wrong_key_fails(self):
        record = encrypt_payload(secrets.token_bytes(32), "secret")
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(secrets.token_bytes(32), record)

    def test_wrong_associated_data_fails(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, "secret", associated_data="tenant-a")
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(key, record, associated_data="tenant-b")

    def test_flipped_ciphertext_bit_fails(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, {"connectionString": "postgresql://h/db"})
        tampered = record.model_copy(update={"ciphertext": _flip_first_hex(record.ciphertext)})
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(key, tampered)

    def test_flipped_tag_bit_fails(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, "secret")
        tampered = record.model_copy(
            update={"authentication_tag": _flip_first_hex(record.authentication_tag)}
        )
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(key, tampered)

    def test_non_hex_fields_fail(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, "secret")
        broken = record.model_copy(update={"initialization_vector": "not-hex"})
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(key, broken)

    def test_short_nonce_fails(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, "secret")
        broken = record.model_copy(update={"initialization_vector": record.initialization_vector[:16]})
        with pytest.raises(TamperedOrCorrupt):
            decrypt_payload(key, broken)

    def test_bad_key_length_rejected(self):
        with pytest.raises(ServerMisconfigured):
            encrypt_payload(b"short", "secret")


class TestTokenForm:
    def test_token_parses_back(self):
        key = secrets.token_bytes(32)
        record = encrypt_payload(key, {"x": "y"})
        token = record.to_token()
        assert token.count(":") == 2
        parsed = type(record).from_token(token)
        assert decrypt_payload(key, parsed) == {"x": "y"}


class TestMasterKey:
    def test_base64_key_used_directly(self):
        raw = secrets.token_bytes(32)
        assert derive_key(base64.b64encode(raw).decode()) == raw

    def test_passphrase_is_hashed(self):
        assert derive_key("correct horse battery staple") == hashlib.sha256(
            b"correct horse battery staple"
        ).digest()

    def test_base64_of_wrong_length_is_hashed(self):
        raw = base64.b64encode(b"sixteen-bytes!!!").decode()
        assert derive_key(raw) == hashlib.sha256(raw.encode()).digest()

    def test_missing_key(self):
        with pytest.raises(ServerMisconfigured):
            derive_key("")
        with pytest.raises(ServerMisconfigured):
            master_key(None)

    def test_generated_key_is_32_bytes(self):
        key = generate_master_key()
        assert len(base64.b64decode(key)) == 32
        assert master_key(key) == base64.b64decode(key)
