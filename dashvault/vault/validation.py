"""
Credential validation — shape rules applied before anything is encrypted.

Each validator raises InvalidCredentialFormat with a client-safe reason;
nothing here ever echoes the submitted key or connection string.

Usage:
    from dashvault.vault.validation import validate_baas_credentials

    validate_baas_credentials(creds, host_suffix="supabase.co")
"""

from __future__ import annotations

from urllib.parse import urlsplit

from dashvault.errors import InvalidCredentialFormat
from dashvault.vault.models import BaasCredentials, DatabaseConnection

CONNECTION_SCHEMES: tuple[str, ...] = ("postgresql://", "postgres://")


def _host_matches(host: str, suffix: str) -> bool:
    suffix = suffix.lower().lstrip(".")
    return host == suffix or host.endswith("." + suffix)


def validate_baas_credentials(
    creds: BaasCredentials,
    *,
    host_suffix: str = "supabase.co",
    min_key_length: int = 20,
    allow_insecure: bool = False,
) -> None:
    """Check a BaaS project URL and API key."""
    if not creds.url or not creds.api_key:
        raise InvalidCredentialFormat("Missing url or apiKey")

    try:
        parts = urlsplit(creds.url)
        host = (parts.hostname or "").lower()
    except ValueError:
        raise InvalidCredentialFormat("Invalid BaaS URL") from None
    allowed_schemes = ("https", "http") if allow_insecure else ("https",)
    if parts.scheme not in allowed_schemes:
        raise InvalidCredentialFormat("Invalid BaaS URL: must use https")

    if not host or not _host_matches(host, host_suffix):
        raise InvalidCredentialFormat(f"Invalid BaaS URL: host must end with {host_suffix}")

    if len(creds.api_key) < min_key_length:
        raise InvalidCredentialFormat(
            f"Invalid API key: must be at least {min_key_length} characters"
        )


def validate_connection_string(conn: DatabaseConnection) -> None:
    """Check a PostgreSQL connection string's scheme and host."""
    dsn = conn.connection_string.strip()
    if not dsn:
        raise InvalidCredentialFormat("Connection string is required")
    if not dsn.startswith(CONNECTION_SCHEMES):
        raise InvalidCredentialFormat("Invalid connection string format: expected postgresql://")
    try:
        host = urlsplit(dsn).hostname
    except ValueError:
        host = None
    if not host:
        raise InvalidCredentialFormat("Invalid connection string: missing host")
