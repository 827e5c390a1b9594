"""
Root-level shared test fixtures.

Inherited by the vault suite and the top-level tests/ directory.
"""

from __future__ import annotations

import uuid

import pytest
from jose import jwt

from dashvault.config import Config, IdentityConfig, VaultConfig, reset_config
from dashvault.vault.crypto import generate_master_key, reset_key_cache

BAAS_JWT_SECRET = "baas-jwt-secret-for-tests-only-0123456789"
SESSION_SECRET = "session-secret-for-tests-only-0123456789"


@pytest.fixture
def test_prefix():
    """Unique prefix for test isolation."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove Dashvault env vars that leak between tests and reset cached state."""
    for key in [
        "DASHVAULT_MASTER_KEY",
        "DASHVAULT_SESSION_SECRET",
        "DASHVAULT_BAAS_JWT_SECRET",
        "DASHVAULT_BAAS_HOST_SUFFIX",
        "DASHVAULT_STORE_BACKEND",
        "DASHVAULT_DATA_DIR",
        "DASHVAULT_DB_HOST",
        "DASHVAULT_DB_PORT",
        "DASHVAULT_DB_NAME",
        "DASHVAULT_DB_USER",
        "DASHVAULT_DB_PASSWORD",
        "DASHVAULT_CONNECT_TIMEOUT",
        "DASHVAULT_STATEMENT_TIMEOUT",
        "DASHVAULT_LOG_LEVEL",
        "DASHVAULT_ALLOW_INSECURE_URLS",
        "DASHVAULT_SECURE_COOKIES",
        "DASHVAULT_HOST",
        "DASHVAULT_PORT",
    ]:
        monkeypatch.delenv(key, raising=False)
    # A developer's .env must not leak into the suite.
    monkeypatch.setattr("dashvault.config.load_dotenv", lambda *a, **kw: False)
    reset_config()
    reset_key_cache()
    yield
    reset_config()
    reset_key_cache()


@pytest.fixture
def master_key() -> str:
    return generate_master_key()


@pytest.fixture
def cfg(tmp_path, master_key) -> Config:
    """File-backed config rooted in a temporary data dir, both identity sources on."""
    return Config(
        store_backend="file",
        data_dir=tmp_path,
        vault=VaultConfig(master_key=master_key),
        identity=IdentityConfig(baas_jwt_secret=BAAS_JWT_SECRET, session_secret=SESSION_SECRET),
    )


def make_baas_token(sub: str, *, secret: str = BAAS_JWT_SECRET, audience: str = "authenticated") -> str:
    return jwt.encode({"sub": sub, "aud": audience, "role": "authenticated"}, secret, algorithm="HS256")


def make_session_token(*, email: str | None = None, sub: str | None = None, secret: str = SESSION_SECRET) -> str:
    claims = {}
    if email is not None:
        claims["email"] = email
    if sub is not None:
        claims["sub"] = sub
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def baas_token():
    return make_baas_token


@pytest.fixture
def session_token():
    return make_session_token
