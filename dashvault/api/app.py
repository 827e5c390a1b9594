"""
Dashvault API — FastAPI app factory.

Start:
  dashvault serve
  # or
  uvicorn dashvault.api.app:create_app --factory --host 127.0.0.1 --port 9200
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import dashvault
from dashvault.api.middleware import CorrelationMiddleware, RequestGateMiddleware
from dashvault.api.routers import auth, connection, credentials, workspace
from dashvault.broker import ConnectionBroker
from dashvault.config import Config, configure_logging, get_config
from dashvault.db.connection import close_pool
from dashvault.errors import ServerMisconfigured, VaultError
from dashvault.identity import build_resolver
from dashvault.vault.store import baas_credentials_store, database_connection_store

logger = logging.getLogger(__name__)


def create_app(cfg: Config | None = None, *, pool_factory=None, http_transport=None) -> FastAPI:
    """Build the app with its stores, resolver and broker on app.state."""
    cfg = cfg or get_config()
    configure_logging(cfg.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if cfg.store_backend == "postgres":
            close_pool()

    app = FastAPI(
        title="Dashvault",
        description="Per-tenant encrypted credential vault and connection broker.",
        version=dashvault.__version__,
        lifespan=lifespan,
    )

    baas_store = baas_credentials_store(cfg)
    database_store = database_connection_store(cfg)
    broker_kwargs = {"http_transport": http_transport}
    if pool_factory is not None:
        broker_kwargs["pool_factory"] = pool_factory

    app.state.config = cfg
    app.state.resolver = build_resolver(cfg.identity)
    app.state.baas_store = baas_store
    app.state.database_store = database_store
    app.state.broker = ConnectionBroker(baas_store, database_store, cfg.broker, **broker_kwargs)

    if not cfg.vault.has_master_key:
        logger.warning("DASHVAULT_MASTER_KEY is not set; credential reads and writes will fail")

    # Last added runs first: correlation ids wrap the gate.
    app.add_middleware(RequestGateMiddleware)
    app.add_middleware(CorrelationMiddleware)

    @app.exception_handler(VaultError)
    async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
        if isinstance(exc, ServerMisconfigured):
            logger.error("%s %s: %s", request.method, request.url.path, exc.message)
        elif exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, type(exc).__name__)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    @app.get("/health")
    def health():
        return {"status": "ok", "version": dashvault.__version__}

    app.include_router(credentials.router)
    app.include_router(connection.router)
    app.include_router(auth.router)
    app.include_router(workspace.router)

    return app
