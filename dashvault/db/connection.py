"""
Vault database — the application's own PostgreSQL, holding ``tenant_secrets``.

Only the ``postgres`` store backend touches it. Tenant databases are opened
by ``dashvault.broker`` and never share this pool.

Usage:
    from dashvault.db import get_connection

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM tenant_secrets LIMIT 1")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg2
import psycopg2.pool

from dashvault.config import Config, get_config
from dashvault.errors import ServerMisconfigured

logger = logging.getLogger(__name__)


class VaultDatabase:
    """Lazily opened, thread-safe pool on the vault database."""

    def __init__(self, cfg: Config, *, maxconn: int = 10) -> None:
        self.cfg = cfg
        self.maxconn = maxconn
        self._pool: psycopg2.pool.ThreadedConnectionPool | None = None
        self._lock = threading.Lock()

    def _open(self) -> psycopg2.pool.ThreadedConnectionPool:
        db = self.cfg.db
        logger.info(
            "Opening vault database pool on %s:%s/%s (max=%d)",
            db.host or "localhost",
            db.port,
            db.name,
            self.maxconn,
        )
        try:
            return psycopg2.pool.ThreadedConnectionPool(
                1,
                self.maxconn,
                connect_timeout=self.cfg.broker.connect_timeout,
                **db.dict,
            )
        except psycopg2.OperationalError as e:
            logger.error("Vault database unreachable: %s", type(e).__name__)
            raise ServerMisconfigured(
                "Credential storage database is unreachable (check DASHVAULT_DB_*)."
            ) from None

    @property
    def pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        if self._pool is None or self._pool.closed:
            with self._lock:
                if self._pool is None or self._pool.closed:
                    self._pool = self._open()
        return self._pool

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        """One pooled connection, one transaction: commit on success, roll back on error."""
        pool = self.pool
        conn = pool.getconn()
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None


_database: VaultDatabase | None = None
_database_lock = threading.Lock()


def get_database() -> VaultDatabase:
    """The process-wide vault database, built from get_config()."""
    global _database
    with _database_lock:
        if _database is None:
            _database = VaultDatabase(get_config())
        return _database


@contextmanager
def get_connection() -> Iterator[psycopg2.extensions.connection]:
    with get_database().connection() as conn:
        yield conn


def close_pool() -> None:
    """Close the vault pool and forget it (for shutdown and tests)."""
    global _database
    with _database_lock:
        if _database is not None:
            _database.close()
            _database = None
