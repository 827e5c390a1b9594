"""Shared FastAPI dependencies — everything comes from app.state, set by create_app()."""

from __future__ import annotations

from fastapi import Request

from dashvault.broker import ConnectionBroker
from dashvault.config import Config
from dashvault.errors import Unauthenticated
from dashvault.identity import IdentityResolver
from dashvault.vault.models import BaasCredentials, DatabaseConnection
from dashvault.vault.store import EncryptedStore


def get_config_dep(request: Request) -> Config:
    return request.app.state.config


def get_resolver(request: Request) -> IdentityResolver:
    return request.app.state.resolver


def get_baas_store(request: Request) -> EncryptedStore[BaasCredentials]:
    return request.app.state.baas_store


def get_database_store(request: Request) -> EncryptedStore[DatabaseConnection]:
    return request.app.state.database_store


def get_broker(request: Request) -> ConnectionBroker:
    return request.app.state.broker


def get_tenant_id(request: Request) -> str:
    """Tenant id set by the request gate, resolved here if the gate skipped the path.

    Raises Unauthenticated (→ 401) when no identity source matches.
    """
    tenant_id = getattr(request.state, "tenant_id", None)
    if tenant_id:
        return tenant_id
    tenant_id = get_resolver(request).require(request)
    request.state.tenant_id = tenant_id
    return tenant_id
