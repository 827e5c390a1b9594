"""
Identity resolution — one canonical tenant id per request.

Providers are tried in order and the first one that yields an identity wins:

    1. BaasSessionProvider   — BaaS access-token cookie → raw BaaS user id
    2. TokenSessionProvider  — bearer / session-token JWT → "token:<email|sub>"

Token-derived identities live under the ``token:`` namespace and BaaS ids
may never start with it, so the two sources cannot collide on a tenant.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from jose import JWTError, jwt

from dashvault.config import IdentityConfig
from dashvault.errors import Unauthenticated

logger = logging.getLogger(__name__)

TOKEN_NAMESPACE = "token:"


class RequestLike(Protocol):
    """The parts of an inbound request identity providers read."""

    @property
    def headers(self) -> Mapping[str, str]: ...

    @property
    def cookies(self) -> Mapping[str, str]: ...


class IdentityProvider(ABC):
    """One source of identity. Returns None when it has nothing to say."""

    name: str = "provider"

    @abstractmethod
    def try_resolve(self, request: RequestLike) -> str | None: ...


def _bearer_token(request: RequestLike) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _decode(token: str, secret: str, algorithm: str, audience: str | None = None) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm], audience=audience)
    except JWTError as e:
        # Token content is never logged.
        logger.debug("Rejected session token: %s", type(e).__name__)
        return None


class BaasSessionProvider(IdentityProvider):
    """Verify the BaaS access token and return the BaaS user id (``sub``)."""

    name = "baas"

    def __init__(
        self,
        jwt_secret: str,
        *,
        cookie_name: str = "sb-access-token",
        audience: str | None = "authenticated",
        algorithm: str = "HS256",
    ) -> None:
        self.jwt_secret = jwt_secret
        self.cookie_name = cookie_name
        self.audience = audience
        self.algorithm = algorithm

    def try_resolve(self, request: RequestLike) -> str | None:
        if not self.jwt_secret:
            return None
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        claims = _decode(token, self.jwt_secret, self.algorithm, self.audience)
        if not claims:
            return None
        user_id = claims.get("sub")
        if not isinstance(user_id, str) or not user_id:
            return None
        if user_id.startswith(TOKEN_NAMESPACE):
            logger.warning("Rejected BaaS session whose user id uses the reserved token namespace")
            return None
        return user_id


class TokenSessionProvider(IdentityProvider):
    """Verify the app-level session token and return a namespaced identity."""

    name = "token"

    def __init__(
        self,
        secret: str,
        *,
        cookie_name: str = "session-token",
        algorithm: str = "HS256",
    ) -> None:
        self.secret = secret
        self.cookie_name = cookie_name
        self.algorithm = algorithm

    def try_resolve(self, request: RequestLike) -> str | None:
        if not self.secret:
            return None
        token = _bearer_token(request) or request.cookies.get(self.cookie_name)
        if not token:
            return None
        claims = _decode(token, self.secret, self.algorithm)
        if not claims:
            return None
        for claim in ("email", "sub"):
            value = claims.get(claim)
            if isinstance(value, str) and value:
                return namespaced(value)
        return None


def namespaced(subject: str) -> str:
    """Tenant id for a token-sourced subject."""
    return f"{TOKEN_NAMESPACE}{subject}"


class IdentityResolver:
    """Try each provider in order; the first identity wins."""

    def __init__(self, providers: Iterable[IdentityProvider]) -> None:
        self.providers = list(providers)

    def resolve(self, request: RequestLike) -> str | None:
        for provider in self.providers:
            tenant_id = provider.try_resolve(request)
            if tenant_id:
                logger.debug("Identity resolved by %s provider", provider.name)
                return tenant_id
        return None

    def require(self, request: RequestLike) -> str:
        """Like resolve(), but raise Unauthenticated instead of returning None."""
        tenant_id = self.resolve(request)
        if tenant_id is None:
            raise Unauthenticated("Unauthorized")
        return tenant_id


def build_resolver(cfg: IdentityConfig) -> IdentityResolver:
    """Standard provider order: BaaS session first, then token session."""
    return IdentityResolver([
        BaasSessionProvider(
            cfg.baas_jwt_secret,
            cookie_name=cfg.baas_cookie,
            audience=cfg.baas_jwt_audience or None,
            algorithm=cfg.algorithm,
        ),
        TokenSessionProvider(
            cfg.session_secret,
            cookie_name=cfg.session_cookie,
            algorithm=cfg.algorithm,
        ),
    ])
