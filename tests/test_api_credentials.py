"""Tests for the credential and connection routes."""

import json
from dataclasses import replace

import psycopg2
import pytest
from httpx import ASGITransport, AsyncClient

from dashvault.api.app import create_app
from dashvault.config import VaultConfig

BAAS_CREDS = {"url": "https://tenant.supabase.co", "apiKey": "anon-key-0123456789abcdef"}
DSN = "postgresql://app:pw@db.example.com:5432/app"


class TestCredentials:
    @pytest.mark.asyncio
    async def test_save_then_read_back(self, client, baas_user):
        resp = await client.post("/credentials", json=BAAS_CREDS, headers=baas_user)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        resp = await client.get("/credentials", headers=baas_user)
        assert resp.json() == {"configured": True, "url": BAAS_CREDS["url"], "apiKey": BAAS_CREDS["apiKey"]}

        resp = await client.get("/credentials/status", headers=baas_user)
        assert resp.json() == {"connected": True}

    @pytest.mark.asyncio
    async def test_tenants_see_only_their_own(self, client, baas_token, cookies):
        alice = cookies(**{"sb-access-token": baas_token("alice")})
        bob = cookies(**{"sb-access-token": baas_token("bob")})
        other = {"url": "https://other.supabase.co", "apiKey": "other-anon-key-0123456789"}

        await client.post("/credentials", json=BAAS_CREDS, headers=alice)
        await client.post("/credentials", json=other, headers=bob)

        assert (await client.get("/credentials", headers=alice)).json()["url"] == BAAS_CREDS["url"]
        assert (await client.get("/credentials", headers=bob)).json()["url"] == other["url"]

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, client, baas_user, app):
        body = {"url": "https://evil.example.com", "apiKey": BAAS_CREDS["apiKey"]}
        resp = await client.post("/credentials", json=body, headers=baas_user)
        assert resp.status_code == 400
        assert "host must end with" in resp.json()["error"]
        assert not app.state.baas_store.exists("user-123")

    @pytest.mark.asyncio
    async def test_malformed_url_rejected(self, client, baas_user, app):
        body = {"url": "https://[proj.supabase.co", "apiKey": BAAS_CREDS["apiKey"]}
        resp = await client.post("/credentials", json=body, headers=baas_user)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid BaaS URL"}
        assert not app.state.baas_store.exists("user-123")

    @pytest.mark.asyncio
    async def test_missing_field(self, client, baas_user):
        resp = await client.post("/credentials", json={"url": BAAS_CREDS["url"]}, headers=baas_user)
        assert resp.status_code == 400
        assert "apiKey" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_malformed_body(self, client, baas_user):
        headers = {**baas_user, "content-type": "application/json"}
        resp = await client.post("/credentials", content=b"{nope", headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid request body"}

    @pytest.mark.asyncio
    async def test_tampered_storage_is_500(self, client, configured_user, cfg):
        path = cfg.data_dir / "baas-credentials.json"
        data = json.loads(path.read_text())
        tag = data["user-123"]["authenticationTag"]
        data["user-123"]["authenticationTag"] = ("0" if tag[0] != "0" else "1") + tag[1:]
        path.write_text(json.dumps(data))

        resp = await client.get("/credentials", headers=configured_user)
        assert resp.status_code == 500
        assert BAAS_CREDS["apiKey"] not in resp.text

    @pytest.mark.asyncio
    async def test_missing_master_key(self, cfg, baas_token, cookies):
        app = create_app(replace(cfg, vault=VaultConfig(master_key="")))
        headers = cookies(**{"sb-access-token": baas_token("user-123")})
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            resp = await c.post("/credentials", json=BAAS_CREDS, headers=headers)
        assert resp.status_code == 500
        assert "Encryption key not configured" in resp.json()["error"]
        assert not app.state.baas_store.exists("user-123")


class TestConnection:
    @pytest.mark.asyncio
    async def test_save_validates_live(self, client, baas_user, pool_factory, tenant_pool, app):
        resp = await client.post("/connection", json={"connectionString": DSN}, headers=baas_user)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert pool_factory.call_args[0][2] == DSN
        sql = tenant_pool.cursor.execute.call_args[0][0]
        assert sql == "SELECT NOW()"
        tenant_pool.closeall.assert_called_once()
        assert app.state.database_store.load("user-123").connection_string == DSN

        resp = await client.get("/connection-status", headers=baas_user)
        assert resp.json() == {"connected": True}

    @pytest.mark.asyncio
    async def test_unreachable_database_not_saved(self, client, baas_user, pool_factory, app):
        pool_factory.side_effect = psycopg2.OperationalError("could not connect to server")
        resp = await client.post("/connection", json={"connectionString": DSN}, headers=baas_user)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Failed to connect to database"}
        assert not app.state.database_store.exists("user-123")

    @pytest.mark.asyncio
    async def test_bad_scheme_not_attempted(self, client, baas_user, pool_factory, app):
        body = {"connectionString": "mysql://root@db.example.com/app"}
        resp = await client.post("/connection", json=body, headers=baas_user)
        assert resp.status_code == 400
        assert "postgresql://" in resp.json()["error"]
        pool_factory.assert_not_called()
        assert not app.state.database_store.exists("user-123")

    @pytest.mark.asyncio
    async def test_status_without_connection(self, client, baas_user):
        resp = await client.get("/connection-status", headers=baas_user)
        assert resp.json() == {"connected": False}
