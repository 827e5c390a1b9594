"""
Record backends — durable tenant_id → EncryptedSecretRecord mappings.

Two implementations share the minimal key-value contract the stores need:

- JsonFileBackend: one JSON file per store, replaced atomically on write.
- PostgresBackend: the ``tenant_secrets`` table, upserted with psycopg2
  (same pattern as the rest of the DAL code).
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from dashvault.errors import TamperedOrCorrupt
from dashvault.vault.models import EncryptedSecretRecord

logger = logging.getLogger(__name__)


class RecordBackend(ABC):
    """Keyed storage for encrypted records. One backend instance per store."""

    @abstractmethod
    def get(self, tenant_id: str) -> EncryptedSecretRecord | None: ...

    @abstractmethod
    def put(self, tenant_id: str, record: EncryptedSecretRecord) -> None: ...

    @abstractmethod
    def exists(self, tenant_id: str) -> bool: ...

    @abstractmethod
    def delete(self, tenant_id: str) -> bool: ...


# ─── JSON file ────────────────────────────────────────────────────────

_file_locks: dict[Path, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _file_locks_guard:
        lock = _file_locks.get(path)
        if lock is None:
            lock = _file_locks[path] = threading.Lock()
        return lock


class JsonFileBackend(RecordBackend):
    """Store records in a single JSON mapping file.

    Writes are serialized by a per-file lock and land via write-to-temp plus
    ``os.replace``, so readers see either the old or the new file, never a
    partial one.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).resolve()
        self._lock = _lock_for(self.path)

    def _read(self) -> dict[str, dict]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Credential file %s is not valid JSON", self.path.name)
            raise TamperedOrCorrupt("Credential storage is corrupt") from None
        if not isinstance(data, dict):
            raise TamperedOrCorrupt("Credential storage is corrupt")
        return data

    def _write(self, data: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)  # 600
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, tenant_id: str) -> EncryptedSecretRecord | None:
        entry = self._read().get(tenant_id)
        if entry is None:
            return None
        try:
            return EncryptedSecretRecord.model_validate(entry)
        except ValueError:
            raise TamperedOrCorrupt("Stored credentials are malformed") from None

    def put(self, tenant_id: str, record: EncryptedSecretRecord) -> None:
        with self._lock:
            data = self._read()
            data[tenant_id] = record.to_storage()
            self._write(data)

    def exists(self, tenant_id: str) -> bool:
        return tenant_id in self._read()

    def delete(self, tenant_id: str) -> bool:
        with self._lock:
            data = self._read()
            if tenant_id not in data:
                return False
            del data[tenant_id]
            self._write(data)
            return True


# ─── PostgreSQL ───────────────────────────────────────────────────────


class PostgresBackend(RecordBackend):
    """Store records in the ``tenant_secrets`` table, keyed by (store, tenant_id)."""

    def __init__(self, store: str) -> None:
        self.store = store

    def get(self, tenant_id: str) -> EncryptedSecretRecord | None:
        from dashvault.db.connection import get_connection

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT initialization_vector, authentication_tag, ciphertext, created_at
                    FROM tenant_secrets WHERE store = %s AND tenant_id = %s
                    """,
                    (self.store, tenant_id),
                )
                row = cur.fetchone()
        if not row:
            return None
        return EncryptedSecretRecord(
            initialization_vector=row[0],
            authentication_tag=row[1],
            ciphertext=row[2],
            created_at=row[3],
        )

    def put(self, tenant_id: str, record: EncryptedSecretRecord) -> None:
        from dashvault.db.connection import get_connection

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO tenant_secrets
                        (store, tenant_id, initialization_vector, authentication_tag,
                         ciphertext, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (store, tenant_id)
                    DO UPDATE SET initialization_vector = EXCLUDED.initialization_vector,
                                  authentication_tag = EXCLUDED.authentication_tag,
                                  ciphertext = EXCLUDED.ciphertext,
                                  created_at = EXCLUDED.created_at,
                                  updated_at = EXCLUDED.updated_at
                    """,
                    (
                        self.store,
                        tenant_id,
                        record.initialization_vector,
                        record.authentication_tag,
                        record.ciphertext,
                        record.created_at,
                        datetime.now(UTC),
                    ),
                )

    def exists(self, tenant_id: str) -> bool:
        from dashvault.db.connection import get_connection

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM tenant_secrets WHERE store = %s AND tenant_id = %s",
                    (self.store, tenant_id),
                )
                return cur.fetchone() is not None

    def delete(self, tenant_id: str) -> bool:
        from dashvault.db.connection import get_connection

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM tenant_secrets WHERE store = %s AND tenant_id = %s",
                    (self.store, tenant_id),
                )
                return cur.rowcount > 0
