"""
Shared fixtures for the HTTP test suite.

Provides an app built against a temporary file store, an async client wired
through ASGITransport, and a mock pool factory standing in for tenant
PostgreSQL databases.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dashvault.api.app import create_app

BAAS_CREDS = {"url": "https://tenant.supabase.co", "apiKey": "anon-key-0123456789abcdef"}
DSN = "postgresql://app:pw@db.example.com:5432/app"


@pytest.fixture
def tenant_pool():
    """Pool stand-in; set ``tenant_pool.rows`` to control what queries return."""
    pool = MagicMock()
    pool.getconn.return_value.closed = 0
    cursor = pool.getconn.return_value.cursor.return_value.__enter__.return_value
    cursor.description = [("id",)]
    cursor.fetchall.return_value = []
    pool.cursor = cursor
    return pool


@pytest.fixture
def pool_factory(tenant_pool):
    return MagicMock(return_value=tenant_pool)


@pytest.fixture
def app(cfg, pool_factory):
    return create_app(cfg, pool_factory=pool_factory)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def cookie_header(**cookies: str) -> dict[str, str]:
    return {"cookie": "; ".join(f"{k}={v}" for k, v in cookies.items())}


@pytest.fixture
def cookies():
    return cookie_header


@pytest.fixture
def baas_user(app, baas_token):
    """Request headers for a signed-in BaaS user with no stored credentials."""
    return cookie_header(**{"sb-access-token": baas_token("user-123")})


@pytest.fixture
def configured_user(app, baas_user):
    """A signed-in BaaS user who has stored project credentials."""
    app.state.baas_store.save("user-123", BAAS_CREDS)
    return baas_user


@pytest.fixture
def database_user(app, baas_user):
    """A signed-in user with a stored database connection."""
    app.state.database_store.save("user-123", {"connectionString": DSN})
    return baas_user
