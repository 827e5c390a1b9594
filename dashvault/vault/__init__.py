"""
Dashvault Vault — per-tenant encrypted credential stores (AES-256-GCM).

Public API:
    baas_credentials_store(cfg)     → EncryptedStore[BaasCredentials]
    database_connection_store(cfg)  → EncryptedStore[DatabaseConnection]
    store.save(tenant, payload)     → validate + encrypt + persist
    store.load(tenant)              → decrypted payload or None
    store.exists(tenant)            → bool, no decryption
    derive_key(raw) / encrypt_payload / decrypt_payload
"""

from __future__ import annotations

from dashvault.vault.crypto import (
    decrypt_payload,
    derive_key,
    encrypt_payload,
    generate_master_key,
)
from dashvault.vault.models import BaasCredentials, DatabaseConnection, EncryptedSecretRecord
from dashvault.vault.store import (
    EncryptedStore,
    baas_credentials_store,
    database_connection_store,
    redact_tenant,
)

__all__ = [
    "BaasCredentials",
    "DatabaseConnection",
    "EncryptedSecretRecord",
    "EncryptedStore",
    "baas_credentials_store",
    "database_connection_store",
    "decrypt_payload",
    "derive_key",
    "encrypt_payload",
    "generate_master_key",
    "redact_tenant",
]
