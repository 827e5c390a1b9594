"""
Dashvault CLI — entry point for operator tasks.

Usage:
    dashvault serve                      # Start the API server
    dashvault status                     # Show configuration status (no secrets)
    dashvault keygen                     # Print a fresh master key
    dashvault migrate [status|apply]     # Run vault table migrations
    dashvault revoke STORE TENANT        # Delete a tenant's stored secret
    dashvault version                    # Show version
"""

from __future__ import annotations

import argparse
import sys

STORES = ("baas", "database")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dashvault",
        description="Dashvault — per-tenant encrypted credential vault and connection broker.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: DASHVAULT_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: DASHVAULT_PORT)")

    # status
    subparsers.add_parser("status", help="Show configuration status")

    # keygen
    subparsers.add_parser("keygen", help="Generate a base64 master key")

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Run vault table migrations")
    migrate_parser.add_argument("action", nargs="?", choices=["status", "apply"], default="status")
    migrate_parser.add_argument("--dry-run", action="store_true", help="Print SQL without executing")

    # revoke
    revoke_parser = subparsers.add_parser("revoke", help="Delete a tenant's stored secret")
    revoke_parser.add_argument("store", choices=STORES, help="Which secret to delete")
    revoke_parser.add_argument("tenant", help="Tenant id")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from dashvault import __version__

        print(f"dashvault {__version__}")
        return 0

    if args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "status":
        return _cmd_status()
    elif args.command == "keygen":
        return _cmd_keygen()
    elif args.command == "migrate":
        return _cmd_migrate(args)
    elif args.command == "revoke":
        return _cmd_revoke(args)
    else:
        parser.print_help()
        return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is required. Install with: pip install dashvault")
        return 1

    from dashvault.config import get_config

    cfg = get_config()
    host = args.host or cfg.host
    port = args.port or cfg.port
    print(f"Starting Dashvault on {host}:{port}...")
    uvicorn.run("dashvault.api.app:create_app", factory=True, host=host, port=port)
    return 0


def _cmd_status() -> int:
    from dashvault import __version__
    from dashvault.config import get_config

    cfg = get_config()
    print(f"Dashvault v{__version__}")
    print()
    print(f"  Store backend:   {cfg.store_backend}")
    if cfg.store_backend == "file":
        print(f"  Data dir:        {cfg.data_dir}")
    else:
        print(f"  PostgreSQL:      {cfg.db.host or '(socket)'}:{cfg.db.port}/{cfg.db.name}")
    print(f"  Master key:      {'set' if cfg.vault.has_master_key else 'MISSING'}")
    print(f"  BaaS sessions:   {'enabled' if cfg.identity.baas_jwt_secret else 'disabled'}")
    print(f"  Token sessions:  {'enabled' if cfg.identity.session_secret else 'disabled'}")
    print(f"  BaaS host:       *.{cfg.vault.baas_host_suffix}")
    print(
        f"  Timeouts:        connect {cfg.broker.connect_timeout}s, "
        f"statement {cfg.broker.statement_timeout}s"
    )
    return 0 if cfg.vault.has_master_key else 1


def _cmd_keygen() -> int:
    from dashvault.vault.crypto import generate_master_key

    print(generate_master_key())
    return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    import psycopg2

    from dashvault.db import migrate
    from dashvault.errors import VaultError

    try:
        if args.action == "apply":
            migrate.apply(dry_run=args.dry_run)
        else:
            migrate.print_status(migrate.status())
        return 0
    except VaultError as e:
        print(f"Error: {e.message}")
        return 1
    except psycopg2.Error as e:
        print(f"Error: Migration failed: {type(e).__name__}")
        print("Check DASHVAULT_DB_* environment variables and ensure PostgreSQL is running.")
        return 1


def _cmd_revoke(args: argparse.Namespace) -> int:
    from dashvault.config import get_config
    from dashvault.errors import VaultError
    from dashvault.vault.store import baas_credentials_store, database_connection_store, redact_tenant

    cfg = get_config()
    store = baas_credentials_store(cfg) if args.store == "baas" else database_connection_store(cfg)
    try:
        deleted = store.delete(args.tenant)
    except VaultError as e:
        print(f"Error: {e.message}")
        return 1
    if not deleted:
        print(f"No {args.store} secret stored for {redact_tenant(args.tenant)}")
        return 1
    print(f"Revoked {args.store} secret for {redact_tenant(args.tenant)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
