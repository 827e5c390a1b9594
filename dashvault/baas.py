"""
Tenant BaaS client — a thin REST client bound to one tenant's own project.

Talks to the project's REST (``/rest/v1``) and auth (``/auth/v1``) endpoints
with httpx. Construction does no network I/O; the first request is the
first validation of the tenant's URL and key.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dashvault.errors import TenantConnectionError
from dashvault.handles import HandleState, ManagedHandle

logger = logging.getLogger(__name__)


class TenantBaasClient(ManagedHandle):
    """REST client for one tenant's BaaS project. Close it when done."""

    kind = "baas client"

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.url = url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.url,
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def _release(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self.state is not HandleState.OPEN:
            raise TenantConnectionError("BaaS client is not open")
        try:
            response = self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.mark_failed()
            logger.warning("BaaS request %s %s failed with status %d", method, path, e.response.status_code)
            raise TenantConnectionError(
                f"BaaS project returned HTTP {e.response.status_code}"
            ) from None
        except httpx.HTTPError as e:
            self.mark_failed()
            logger.warning("BaaS request %s %s failed: %s", method, path, type(e).__name__)
            raise TenantConnectionError("Could not reach BaaS project") from None
        return response

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
    ) -> list[dict]:
        """``GET /rest/v1/<table>`` with equality filters."""
        params: dict[str, str] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order
        return self._request("GET", f"/rest/v1/{table}", params=params).json()

    def insert(self, table: str, row: dict[str, Any]) -> dict:
        """``POST /rest/v1/<table>`` returning the created row."""
        response = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        return rows[0] if isinstance(rows, list) and rows else rows

    def get_user(self, access_token: str) -> dict:
        """``GET /auth/v1/user`` for an access token issued by this project."""
        response = self._request(
            "GET",
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.json()

    def exchange_code_for_session(self, code: str, code_verifier: str | None = None) -> dict:
        """Complete a federated sign-in: trade an auth code for a session."""
        if code_verifier:
            params = {"grant_type": "pkce"}
            body = {"auth_code": code, "code_verifier": code_verifier}
        else:
            params = {"grant_type": "authorization_code"}
            body = {"code": code}
        return self._request("POST", "/auth/v1/token", params=params, json=body).json()
