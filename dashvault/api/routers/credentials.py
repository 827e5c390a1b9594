"""BaaS project credential routes — read back, store, and check a tenant's URL + key."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from dashvault.api.deps import get_baas_store, get_tenant_id
from dashvault.api.models import ConnectionStatus, CredentialsStatus
from dashvault.vault.models import BaasCredentials
from dashvault.vault.store import EncryptedStore

router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.get("", response_model=CredentialsStatus, response_model_exclude_none=True)
def api_get_credentials(
    tenant_id: str = Depends(get_tenant_id),
    store: EncryptedStore[BaasCredentials] = Depends(get_baas_store),
):
    creds = store.load(tenant_id)
    if creds is None:
        return CredentialsStatus(configured=False)
    return CredentialsStatus(configured=True, url=creds.url, apiKey=creds.api_key)


@router.post("")
def api_save_credentials(
    body: dict[str, Any] = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    store: EncryptedStore[BaasCredentials] = Depends(get_baas_store),
):
    store.save(tenant_id, body)
    return {"success": True}


@router.get("/status", response_model=ConnectionStatus)
def api_credentials_status(
    tenant_id: str = Depends(get_tenant_id),
    store: EncryptedStore[BaasCredentials] = Depends(get_baas_store),
):
    return ConnectionStatus(connected=store.exists(tenant_id))
