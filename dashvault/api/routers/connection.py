"""Raw database connection routes — live-validated before anything is stored."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from dashvault.api.deps import get_broker, get_database_store, get_tenant_id
from dashvault.api.models import ConnectionStatus
from dashvault.broker import ConnectionBroker
from dashvault.vault.models import DatabaseConnection
from dashvault.vault.store import EncryptedStore

router = APIRouter(tags=["connection"])


@router.get("/connection-status", response_model=ConnectionStatus)
def api_connection_status(
    tenant_id: str = Depends(get_tenant_id),
    store: EncryptedStore[DatabaseConnection] = Depends(get_database_store),
):
    return ConnectionStatus(connected=store.exists(tenant_id))


@router.post("/connection")
def api_save_connection(
    body: dict[str, Any] = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    broker.save_database_connection(tenant_id, body)
    return {"success": True}
