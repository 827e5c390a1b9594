"""
Centralized configuration for Dashvault.

All configuration is loaded from environment variables with sensible defaults.
A ``.env`` file in the working directory is honoured for local development.

The master key is carried as a raw string and only derived when an operation
needs it, so a missing key fails those operations and nothing else.

Usage:
    from dashvault.config import get_config
    cfg = get_config()
    print(cfg.store_backend)      # "file"
    print(cfg.data_dir)           # "./data" or $DASHVAULT_DATA_DIR
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection parameters for the application's own database."""

    host: str = ""  # empty = Unix socket (peer auth); set to 127.0.0.1 for TCP
    port: int = 5432
    name: str = "dashvault"
    user: str = "dashvault"
    password: str = ""

    @property
    def dsn(self) -> str:
        """Return a psycopg2-compatible DSN string."""
        parts = [f"dbname={self.name}"]
        if self.host:
            parts.append(f"host={self.host}")
        parts.append(f"port={self.port}")
        if self.user:
            parts.append(f"user={self.user}")
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)

    @property
    def dict(self) -> dict[str, str | int]:
        """Return a psycopg2.connect() kwargs dict."""
        d: dict[str, str | int] = {
            "dbname": self.name,
            "port": self.port,
        }
        if self.host:
            d["host"] = self.host
        if self.user:
            d["user"] = self.user
        if self.password:
            d["password"] = self.password
        return d


@dataclass(frozen=True)
class VaultConfig:
    """Encryption and credential-validation settings."""

    master_key: str = field(default="", repr=False)
    baas_host_suffix: str = "supabase.co"
    min_api_key_length: int = 20
    allow_insecure_urls: bool = False

    @property
    def has_master_key(self) -> bool:
        return bool(self.master_key)


@dataclass(frozen=True)
class IdentityConfig:
    """Session verification settings for both identity sources."""

    baas_jwt_secret: str = field(default="", repr=False)
    baas_jwt_audience: str = "authenticated"
    baas_cookie: str = "sb-access-token"
    session_secret: str = field(default="", repr=False)
    session_cookie: str = "session-token"
    algorithm: str = "HS256"


@dataclass(frozen=True)
class BrokerConfig:
    """Limits applied to every tenant-supplied database or BaaS connection."""

    connect_timeout: int = 5
    statement_timeout: int = 15
    http_timeout: float = 10.0
    max_connections: int = 5


@dataclass(frozen=True)
class Config:
    """Top-level Dashvault configuration."""

    store_backend: str = "file"  # file | postgres
    data_dir: Path = field(default_factory=lambda: Path("data"))
    log_level: str = "INFO"

    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)

    host: str = "127.0.0.1"
    port: int = 9200
    secure_cookies: bool = False


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    master_key = os.environ.get("DASHVAULT_MASTER_KEY", "")

    db = DatabaseConfig(
        host=os.environ.get("DASHVAULT_DB_HOST", ""),
        port=int(os.environ.get("DASHVAULT_DB_PORT", "5432")),
        name=os.environ.get("DASHVAULT_DB_NAME", "dashvault"),
        user=os.environ.get("DASHVAULT_DB_USER", os.environ.get("USER", "dashvault")),
        password=os.environ.get("DASHVAULT_DB_PASSWORD", ""),
    )

    vault_cfg = VaultConfig(
        master_key=master_key,
        baas_host_suffix=os.environ.get("DASHVAULT_BAAS_HOST_SUFFIX", "supabase.co"),
        min_api_key_length=int(os.environ.get("DASHVAULT_MIN_API_KEY_LENGTH", "20")),
        allow_insecure_urls=_env_bool("DASHVAULT_ALLOW_INSECURE_URLS"),
    )

    identity_cfg = IdentityConfig(
        baas_jwt_secret=os.environ.get("DASHVAULT_BAAS_JWT_SECRET", ""),
        baas_jwt_audience=os.environ.get("DASHVAULT_BAAS_JWT_AUDIENCE", "authenticated"),
        baas_cookie=os.environ.get("DASHVAULT_BAAS_COOKIE", "sb-access-token"),
        # The token session falls back to the master key, as the dashboard's auth layer does.
        session_secret=os.environ.get("DASHVAULT_SESSION_SECRET", master_key),
        session_cookie=os.environ.get("DASHVAULT_SESSION_COOKIE", "session-token"),
    )

    broker_cfg = BrokerConfig(
        connect_timeout=int(os.environ.get("DASHVAULT_CONNECT_TIMEOUT", "5")),
        statement_timeout=int(os.environ.get("DASHVAULT_STATEMENT_TIMEOUT", "15")),
        http_timeout=float(os.environ.get("DASHVAULT_HTTP_TIMEOUT", "10")),
        max_connections=int(os.environ.get("DASHVAULT_MAX_CONNECTIONS", "5")),
    )

    return Config(
        store_backend=os.environ.get("DASHVAULT_STORE_BACKEND", "file"),
        data_dir=Path(os.environ.get("DASHVAULT_DATA_DIR", "data")),
        log_level=os.environ.get("DASHVAULT_LOG_LEVEL", "INFO"),
        db=db,
        vault=vault_cfg,
        identity=identity_cfg,
        broker=broker_cfg,
        host=os.environ.get("DASHVAULT_HOST", "127.0.0.1"),
        port=int(os.environ.get("DASHVAULT_PORT", "9200")),
        secure_cookies=_env_bool("DASHVAULT_SECURE_COOKIES"),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the CLI and the app factory."""
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
