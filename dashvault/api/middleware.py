"""Request gate and correlation IDs.

The gate runs on every request except exempt paths:

    unresolved identity  → public paths pass; JSON endpoints get 401,
                           page navigations are redirected to /login
    resolved, no secrets → redirected to the setup surface
    resolved, configured → pass, with request.state.tenant_id set

It only ever checks existence (no decryption, no writes).
"""

from __future__ import annotations

import logging
import uuid
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from dashvault.errors import VaultError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
SETUP_PATH = "/settings/database"

EXEMPT_PREFIXES: tuple[str, ...] = ("/auth/callback", "/static/", "/_next/", "/health")
STATIC_SUFFIXES: tuple[str, ...] = (".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico")

PUBLIC_PREFIXES: tuple[str, ...] = (
    "/login",
    "/register",
    "/forgot-password",
    "/api/temp-credentials",
)

# Paths a signed-in tenant must reach to finish setup.
SETUP_PREFIXES: tuple[str, ...] = (
    "/settings/database",
    "/settings/connect-baas",
    "/auth/setup-database",
    "/auth/setup-baas",
    "/credentials",
    "/connection",
    "/connection-status",
)

JSON_PREFIXES: tuple[str, ...] = ("/api/", "/credentials", "/connection")


def _matches(path: str, prefix: str) -> bool:
    """Prefix match on whole path segments ("/login" matches "/login/x", not "/loginx")."""
    if prefix.endswith("/"):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + "/")


def is_exempt(path: str) -> bool:
    if path.lower().endswith(STATIC_SUFFIXES):
        return True
    return any(_matches(path, p) for p in EXEMPT_PREFIXES)


def is_public(path: str) -> bool:
    return any(_matches(path, p) for p in PUBLIC_PREFIXES)


def is_setup(path: str) -> bool:
    return any(_matches(path, p) for p in SETUP_PREFIXES)


def wants_json(request: Request) -> bool:
    path = request.url.path
    if any(path.startswith(p) for p in JSON_PREFIXES):
        return True
    accept = request.headers.get("accept", "")
    return "application/json" in accept and "text/html" not in accept


class RequestGateMiddleware(BaseHTTPMiddleware):
    """Resolve identity and hold tenants without credentials at the setup surface."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if is_exempt(path):
            return await call_next(request)

        state = request.app.state
        tenant_id = state.resolver.resolve(request)

        if tenant_id is None:
            if is_public(path):
                return await call_next(request)
            if wants_json(request):
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            return RedirectResponse(f"{LOGIN_PATH}?next={quote(path)}", status_code=307)

        request.state.tenant_id = tenant_id
        if is_public(path) or is_setup(path):
            return await call_next(request)

        try:
            configured = await run_in_threadpool(
                lambda: state.baas_store.exists(tenant_id) or state.database_store.exists(tenant_id)
            )
        except VaultError as e:
            logger.error("Request gate could not check credentials: %s", type(e).__name__)
            return JSONResponse({"error": e.message}, status_code=e.status_code)

        if not configured:
            return RedirectResponse(SETUP_PATH, status_code=307)
        return await call_next(request)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Correlation-Id to every request/response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get("x-correlation-id") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id
        return response
