"""Vault data models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class EncryptedSecretRecord(BaseModel):
    """One encrypted secret as persisted (never includes the decrypted value).

    Field aliases are the persisted JSON names; all binary fields are hex.
    """

    model_config = ConfigDict(populate_by_name=True)

    initialization_vector: str = Field(alias="initializationVector")
    authentication_tag: str = Field(alias="authenticationTag")
    ciphertext: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="createdAt")

    def to_storage(self) -> dict[str, str]:
        """Return the persisted mapping value for this record."""
        return {
            "initializationVector": self.initialization_vector,
            "authenticationTag": self.authentication_tag,
            "ciphertext": self.ciphertext,
            "createdAt": self.created_at.isoformat(),
        }

    def to_token(self) -> str:
        """Compact single-string form: ``iv:tag:ciphertext`` (all hex)."""
        return f"{self.initialization_vector}:{self.authentication_tag}:{self.ciphertext}"

    @classmethod
    def from_token(cls, token: str, created_at: datetime | None = None) -> EncryptedSecretRecord:
        iv_hex, tag_hex, ct_hex = token.split(":", 2)
        data: dict = {
            "initializationVector": iv_hex,
            "authenticationTag": tag_hex,
            "ciphertext": ct_hex,
        }
        if created_at is not None:
            data["createdAt"] = created_at
        return cls.model_validate(data)


class BaasCredentials(BaseModel):
    """A tenant's own BaaS project: URL plus API key."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    url: str
    api_key: str = Field(alias="apiKey")

    def to_payload(self) -> dict[str, str]:
        return {"url": self.url, "apiKey": self.api_key}


class DatabaseConnection(BaseModel):
    """A tenant's own PostgreSQL connection string."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    connection_string: str = Field(alias="connectionString")

    def to_payload(self) -> dict[str, str]:
        return {"connectionString": self.connection_string}
