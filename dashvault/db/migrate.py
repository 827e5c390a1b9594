"""
Schema migrations for the vault database (``dashvault/db/migrations/*.sql``).

Each file is applied once, in version order, inside its own transaction and
recorded in ``schema_migrations`` with a SHA-256 checksum. A recorded
checksum that no longer matches its file is reported as drift.

    dashvault migrate              # show applied vs pending
    dashvault migrate apply        # apply everything pending
    dashvault migrate apply --dry-run

Only needed for DASHVAULT_STORE_BACKEND=postgres.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dashvault.db.connection import get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_FILENAME_RE = re.compile(r"^(?P<version>\d{3}[a-z]?)_[\w-]+\.sql$")

_LEDGER_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     TEXT PRIMARY KEY,
        filename    TEXT NOT NULL,
        checksum    TEXT NOT NULL,
        applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


@dataclass(frozen=True)
class MigrationStatus:
    migration: Migration
    state: str  # pending | applied | drift
    applied_at: datetime | None = None


def discover(migrations_dir: Path | None = None) -> list[Migration]:
    """All well-named migration files, oldest version first."""
    found = []
    for path in (migrations_dir or MIGRATIONS_DIR).glob("*.sql"):
        m = _FILENAME_RE.match(path.name)
        if m:
            found.append(Migration(m.group("version"), path))
    return sorted(found, key=lambda mig: mig.version)


def _ledger(conn) -> dict[str, tuple[str, datetime]]:
    with conn.cursor() as cur:
        cur.execute(_LEDGER_DDL)
        cur.execute("SELECT version, checksum, applied_at FROM schema_migrations")
        return {version: (checksum, applied_at) for version, checksum, applied_at in cur.fetchall()}


def status(migrations_dir: Path | None = None) -> list[MigrationStatus]:
    with get_connection() as conn:
        ledger = _ledger(conn)

    rows = []
    for mig in discover(migrations_dir):
        if mig.version not in ledger:
            rows.append(MigrationStatus(mig, "pending"))
            continue
        checksum, applied_at = ledger[mig.version]
        state = "applied" if checksum == mig.checksum else "drift"
        rows.append(MigrationStatus(mig, state, applied_at))
    return rows


def apply(*, dry_run: bool = False, migrations_dir: Path | None = None) -> list[str]:
    """Apply pending migrations in order; returns the versions applied (or planned)."""
    applied: list[str] = []
    for row in status(migrations_dir):
        if row.state != "pending":
            continue
        mig = row.migration
        if dry_run:
            print(f"[dry-run] {mig.path.name}")
            applied.append(mig.version)
            continue
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(mig.path.read_text())
                cur.execute(
                    "INSERT INTO schema_migrations (version, filename, checksum) VALUES (%s, %s, %s)",
                    (mig.version, mig.path.name, mig.checksum),
                )
        logger.info("Applied migration %s", mig.path.name)
        print(f"Applied {mig.path.name}")
        applied.append(mig.version)
    if not applied:
        print("Nothing to apply.")
    return applied


def print_status(rows: list[MigrationStatus]) -> None:
    if not rows:
        print("No migration files found.")
        return
    print(f"{'Version':<9} {'File':<36} {'State':<8} Applied")
    for row in rows:
        at = row.applied_at.strftime("%Y-%m-%d %H:%M") if row.applied_at else "-"
        print(f"{row.migration.version:<9} {row.migration.path.name:<36} {row.state:<8} {at}")
