"""
EncryptedStore — one generic per-tenant secret store, instantiated twice.

    baas_credentials_store(cfg)      → {url, apiKey}
    database_connection_store(cfg)   → {connectionString}

Flow on save: parse payload → validate → derive key → encrypt (tenant id as
associated data) → backend.put. Any failure before put leaves storage
untouched. Decrypted payloads are returned to the caller and never persisted
or logged.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Mapping
from functools import partial
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from dashvault.config import Config
from dashvault.errors import InvalidCredentialFormat, TamperedOrCorrupt
from dashvault.vault.backends import JsonFileBackend, PostgresBackend, RecordBackend
from dashvault.vault.crypto import decrypt_payload, encrypt_payload, master_key
from dashvault.vault.models import BaasCredentials, DatabaseConnection
from dashvault.vault.validation import validate_baas_credentials, validate_connection_string

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

BAAS_CREDENTIALS = "baas_credentials"
DATABASE_CONNECTIONS = "database_connections"


def redact_tenant(tenant_id: str) -> str:
    """Short, stable fingerprint of a tenant id for log lines."""
    return "tenant#" + hashlib.sha256(tenant_id.encode("utf-8")).hexdigest()[:10]


class EncryptedStore(Generic[P]):
    """Durable tenant → encrypted payload mapping for one payload shape."""

    def __init__(
        self,
        name: str,
        model: type[P],
        backend: RecordBackend,
        *,
        raw_master_key: str,
        validator: Callable[[P], None] | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self.backend = backend
        self._raw_master_key = raw_master_key
        self._validator = validator

    def __repr__(self) -> str:
        return f"EncryptedStore(name={self.name!r}, backend={type(self.backend).__name__})"

    def parse(self, payload: P | Mapping[str, Any]) -> P:
        """Coerce a request body into the payload model and validate it."""
        if isinstance(payload, self.model):
            parsed = payload
        else:
            try:
                parsed = self.model.model_validate(payload)
            except ValidationError as e:
                fields = [".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()]
                missing = ", ".join(fields)
                raise InvalidCredentialFormat(f"Missing or invalid field(s): {missing}") from None
        if self._validator is not None:
            self._validator(parsed)
        return parsed

    def ensure_key(self) -> None:
        """Raise ServerMisconfigured now if the master key is unusable."""
        master_key(self._raw_master_key)

    def save(self, tenant_id: str, payload: P | Mapping[str, Any]) -> None:
        """Validate, encrypt and store the tenant's payload, replacing any prior record."""
        parsed = self.parse(payload)
        key = master_key(self._raw_master_key)
        record = encrypt_payload(
            key,
            parsed.model_dump(by_alias=True),
            associated_data=tenant_id,
        )
        self.backend.put(tenant_id, record)
        logger.info("Stored %s for %s", self.name, redact_tenant(tenant_id))

    def load(self, tenant_id: str) -> P | None:
        """Return the decrypted payload, or None when the tenant has none stored."""
        record = self.backend.get(tenant_id)
        if record is None:
            return None
        key = master_key(self._raw_master_key)
        data = decrypt_payload(key, record, associated_data=tenant_id)
        try:
            return self.model.model_validate(data)
        except ValidationError:
            logger.error("Decrypted %s for %s has unexpected shape", self.name, redact_tenant(tenant_id))
            raise TamperedOrCorrupt("Stored credentials have an unexpected shape") from None

    def exists(self, tenant_id: str) -> bool:
        """Cheap existence check; never decrypts and needs no master key."""
        return self.backend.exists(tenant_id)

    def delete(self, tenant_id: str) -> bool:
        deleted = self.backend.delete(tenant_id)
        if deleted:
            logger.info("Deleted %s for %s", self.name, redact_tenant(tenant_id))
        return deleted


# ─── Factories ────────────────────────────────────────────────────────


def make_backend(cfg: Config, store_name: str) -> RecordBackend:
    """Build the record backend selected by DASHVAULT_STORE_BACKEND."""
    if cfg.store_backend == "postgres":
        return PostgresBackend(store_name)
    if cfg.store_backend == "file":
        filename = store_name.replace("_", "-") + ".json"
        return JsonFileBackend(cfg.data_dir / filename)
    raise ValueError(f"Unknown store backend: {cfg.store_backend!r} (expected 'file' or 'postgres')")


def baas_credentials_store(
    cfg: Config,
    backend: RecordBackend | None = None,
) -> EncryptedStore[BaasCredentials]:
    validator = partial(
        validate_baas_credentials,
        host_suffix=cfg.vault.baas_host_suffix,
        min_key_length=cfg.vault.min_api_key_length,
        allow_insecure=cfg.vault.allow_insecure_urls,
    )
    return EncryptedStore(
        BAAS_CREDENTIALS,
        BaasCredentials,
        backend or make_backend(cfg, BAAS_CREDENTIALS),
        raw_master_key=cfg.vault.master_key,
        validator=validator,
    )


def database_connection_store(
    cfg: Config,
    backend: RecordBackend | None = None,
) -> EncryptedStore[DatabaseConnection]:
    return EncryptedStore(
        DATABASE_CONNECTIONS,
        DatabaseConnection,
        backend or make_backend(cfg, DATABASE_CONNECTIONS),
        raw_master_key=cfg.vault.master_key,
        validator=validate_connection_string,
    )
