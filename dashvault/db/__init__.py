"""Vault database access for the postgres store backend."""

from dashvault.db.connection import VaultDatabase, close_pool, get_connection, get_database

__all__ = ["VaultDatabase", "close_pool", "get_connection", "get_database"]
