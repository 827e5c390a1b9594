"""
Dashvault error taxonomy.

Every failure the vault can produce maps onto one of these types; the HTTP
layer turns them into status codes in one place (``dashvault.api.app``).
Messages are safe to return to clients: they never carry secrets,
connection strings or key material.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all Dashvault errors."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)

    @property
    def message(self) -> str:
        return str(self)


class Unauthenticated(VaultError):
    """No identity could be resolved for the request."""

    status_code = 401


class NotConfigured(VaultError):
    """The tenant has not stored this kind of credential yet."""

    status_code = 404


class InvalidCredentialFormat(VaultError):
    """Submitted credentials failed shape validation."""

    status_code = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ServerMisconfigured(VaultError):
    """The server is missing configuration required for this operation."""

    status_code = 500


class TamperedOrCorrupt(VaultError):
    """A stored record failed authentication and cannot be trusted."""

    status_code = 500


class TenantConnectionError(VaultError):
    """A tenant-supplied database or BaaS project could not be reached.

    ``status_code`` is 400 when the caller just submitted the credentials
    (save-time validation) and 500 for runtime failures.
    """

    def __init__(self, message: str, *, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "InvalidCredentialFormat",
    "NotConfigured",
    "ServerMisconfigured",
    "TamperedOrCorrupt",
    "TenantConnectionError",
    "Unauthenticated",
    "VaultError",
]
