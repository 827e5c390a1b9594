"""Pydantic request/response models for the Dashvault API."""

from __future__ import annotations

from pydantic import BaseModel

# ─── Credentials ─────────────────────────────────────────────────────────


class CredentialsStatus(BaseModel):
    configured: bool
    url: str | None = None
    apiKey: str | None = None


class ConnectionStatus(BaseModel):
    connected: bool


# ─── Workspace data ──────────────────────────────────────────────────────


class CreateProjectRequest(BaseModel):
    name: str = ""
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    budget: float | None = None
    dueDate: str | None = None


class CreateTaskRequest(BaseModel):
    title: str = ""
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    dueDate: str | None = None
    projectId: str | None = None


class CreateTeamMemberRequest(BaseModel):
    name: str = ""
    email: str = ""
    role: str | None = None
    workload: int | None = None
    status: str | None = None
