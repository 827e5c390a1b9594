"""Pre-login credential capture and the federated sign-in callback.

A visitor may submit their own BaaS project before signing in. The URL and
key are parked in a short-lived http-only cookie; when the sign-in callback
completes against that project, they are stored encrypted under the user id
the project returned and the cookie is cleared.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from dashvault.api.deps import get_baas_store, get_broker, get_config_dep
from dashvault.broker import ConnectionBroker
from dashvault.config import Config
from dashvault.errors import InvalidCredentialFormat, VaultError
from dashvault.vault.models import BaasCredentials
from dashvault.vault.store import EncryptedStore, redact_tenant

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

TEMP_COOKIE = "temp_baas_creds"
TEMP_COOKIE_MAX_AGE = 300
CODE_VERIFIER_COOKIE = "baas-code-verifier"
ERROR_PATH = "/auth/auth-code-error"
DEFAULT_NEXT = "/dashboard"


def _safe_next(next_path: str | None) -> str:
    """Only same-site relative paths are valid redirect targets."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return DEFAULT_NEXT
    return next_path


@router.post("/api/temp-credentials")
def api_capture_temp_credentials(
    body: dict[str, Any] = Body(...),
    cfg: Config = Depends(get_config_dep),
    store: EncryptedStore[BaasCredentials] = Depends(get_baas_store),
):
    creds = store.parse(body)
    response = JSONResponse({"success": True})
    response.set_cookie(
        TEMP_COOKIE,
        json.dumps(creds.model_dump(by_alias=True)),
        max_age=TEMP_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cfg.secure_cookies,
    )
    return response


@router.get("/auth/callback")
def auth_callback(
    request: Request,
    code: str | None = Query(None),
    next: str | None = Query(None),
    cfg: Config = Depends(get_config_dep),
    store: EncryptedStore[BaasCredentials] = Depends(get_baas_store),
    broker: ConnectionBroker = Depends(get_broker),
):
    raw = request.cookies.get(TEMP_COOKIE)
    if not code or not raw:
        return RedirectResponse(ERROR_PATH, status_code=307)

    try:
        creds = store.parse(json.loads(raw))
    except (ValueError, InvalidCredentialFormat):
        logger.warning("Discarding unreadable temporary credentials cookie")
        response = RedirectResponse(ERROR_PATH, status_code=307)
        response.delete_cookie(TEMP_COOKIE, path="/")
        return response

    try:
        with broker.baas_client_for(creds) as client:
            session = client.exchange_code_for_session(
                code, request.cookies.get(CODE_VERIFIER_COOKIE)
            )
        user_id = (session.get("user") or {}).get("id")
        if not user_id:
            logger.warning("Sign-in callback returned no user")
            return RedirectResponse(ERROR_PATH, status_code=307)
        store.save(user_id, creds)
    except VaultError as e:
        logger.warning("Sign-in callback failed: %s", type(e).__name__)
        return RedirectResponse(ERROR_PATH, status_code=307)

    logger.info("Captured BaaS credentials for %s", redact_tenant(user_id))
    response = RedirectResponse(_safe_next(next), status_code=307)
    access_token = session.get("access_token")
    if access_token:
        response.set_cookie(
            cfg.identity.baas_cookie,
            access_token,
            max_age=session.get("expires_in"),
            path="/",
            httponly=True,
            samesite="lax",
            secure=cfg.secure_cookies,
        )
    response.delete_cookie(TEMP_COOKIE, path="/")
    return response
