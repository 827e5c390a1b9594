"""
Connection broker — live, tenant-scoped handles built from stored secrets.

Per operation: resolve tenant → load secret → open handle → use → close.
Handles are never cached across requests; each one has a single owner that
must close it (use them as context managers).

    with broker.open_database(tenant_id) as db:
        rows = db.query("SELECT * FROM projects WHERE user_id = %s", (tenant_id,))

Connection strings, keys and tenant ids are never logged; failures surface
as TenantConnectionError with a generic message.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor

from dashvault.baas import TenantBaasClient
from dashvault.config import BrokerConfig
from dashvault.errors import NotConfigured, TenantConnectionError
from dashvault.handles import HandleState, ManagedHandle
from dashvault.vault.models import BaasCredentials, DatabaseConnection
from dashvault.vault.store import EncryptedStore, redact_tenant

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., psycopg2.pool.AbstractConnectionPool]


class TenantDatabase(ManagedHandle):
    """A small connection pool on one tenant's own PostgreSQL database."""

    kind = "tenant database"

    def __init__(
        self,
        dsn: str,
        cfg: BrokerConfig,
        *,
        pool_factory: PoolFactory = psycopg2.pool.SimpleConnectionPool,
        status_code: int = 500,
    ) -> None:
        super().__init__()
        try:
            self._pool = pool_factory(
                1,
                cfg.max_connections,
                dsn,
                connect_timeout=cfg.connect_timeout,
                options=f"-c statement_timeout={cfg.statement_timeout * 1000}",
            )
        except (psycopg2.Error, ValueError) as e:
            self.state = HandleState.CLOSED
            logger.warning("Tenant database connection failed: %s", type(e).__name__)
            raise TenantConnectionError(
                "Failed to connect to database", status_code=status_code
            ) from None

    def _release(self) -> None:
        self._pool.closeall()

    def query(self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None) -> list[dict]:
        """Run one statement in its own transaction; rows come back as dicts."""
        if self.state is not HandleState.OPEN:
            raise TenantConnectionError("Database handle is not open")
        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                rows = [dict(r) for r in cur.fetchall()] if cur.description else []
            conn.commit()
            return rows
        except psycopg2.Error as e:
            if not conn.closed:
                try:
                    conn.rollback()
                except psycopg2.Error:
                    logger.debug("Rollback failed on tenant database connection")
            self.mark_failed()
            logger.warning("Tenant database query failed: %s", type(e).__name__)
            raise TenantConnectionError("Database query failed") from None
        finally:
            # Dropped connections are discarded, not returned for reuse.
            self._pool.putconn(conn, close=bool(conn.closed))


class ConnectionBroker:
    """Builds per-operation handles from a tenant's stored credentials."""

    def __init__(
        self,
        baas_store: EncryptedStore[BaasCredentials],
        database_store: EncryptedStore[DatabaseConnection],
        cfg: BrokerConfig | None = None,
        *,
        pool_factory: PoolFactory = psycopg2.pool.SimpleConnectionPool,
        http_transport=None,
    ) -> None:
        self.baas_store = baas_store
        self.database_store = database_store
        self.cfg = cfg or BrokerConfig()
        self._pool_factory = pool_factory
        self._http_transport = http_transport

    # ─── BaaS ─────────────────────────────────────────────────────────

    def baas_client_for(self, creds: BaasCredentials) -> TenantBaasClient:
        return TenantBaasClient(
            creds.url,
            creds.api_key,
            timeout=self.cfg.http_timeout,
            transport=self._http_transport,
        )

    def open_baas_client(self, tenant_id: str) -> TenantBaasClient:
        """Client bound to the tenant's own project. No network I/O here."""
        creds = self.baas_store.load(tenant_id)
        if creds is None:
            raise NotConfigured("BaaS project not configured")
        return self.baas_client_for(creds)

    # ─── Raw database ─────────────────────────────────────────────────

    def _open(self, dsn: str, *, status_code: int = 500) -> TenantDatabase:
        return TenantDatabase(dsn, self.cfg, pool_factory=self._pool_factory, status_code=status_code)

    def open_database(self, tenant_id: str) -> TenantDatabase:
        """Pool on the tenant's database. Use as a context manager."""
        conn = self.database_store.load(tenant_id)
        if conn is None:
            raise NotConfigured("Database not configured")
        logger.debug("Opening database for %s", redact_tenant(tenant_id))
        return self._open(conn.connection_string)

    def validate_connection_string(self, dsn: str) -> None:
        """Eagerly connect and run a liveness query; closes the pool either way."""
        with self._open(dsn, status_code=400) as db:
            try:
                db.query("SELECT NOW()")
            except TenantConnectionError as e:
                raise TenantConnectionError("Failed to connect to database", status_code=400) from e

    def save_database_connection(
        self,
        tenant_id: str,
        payload: DatabaseConnection | Mapping[str, Any],
    ) -> None:
        """Format check → key check → live validation → encrypted save.

        Nothing is written unless every step succeeds.
        """
        parsed = self.database_store.parse(payload)
        self.database_store.ensure_key()
        self.validate_connection_string(parsed.connection_string)
        self.database_store.save(tenant_id, parsed)

    def query(
        self,
        tenant_id: str,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> list[dict]:
        """Open, run one statement, close."""
        with self.open_database(tenant_id) as db:
            return db.query(sql, params)
