"""Tenant workspace data — projects, tasks and team members in the tenant's own database.

Every handler opens the tenant's database through the broker for the one
statement it runs and closes it again before returning.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dashvault.api.deps import get_broker, get_tenant_id
from dashvault.api.models import CreateProjectRequest, CreateTaskRequest, CreateTeamMemberRequest
from dashvault.broker import ConnectionBroker
from dashvault.errors import NotConfigured

router = APIRouter(prefix="/api", tags=["workspace"])

NOT_CONFIGURED_MESSAGE = "Database not configured"


def _list(broker: ConnectionBroker, tenant_id: str, key: str, table: str):
    try:
        rows = broker.query(
            tenant_id,
            f"SELECT * FROM {table} WHERE user_id = %s ORDER BY created_at DESC",
            (tenant_id,),
        )
    except NotConfigured:
        return {key: [], "message": NOT_CONFIGURED_MESSAGE}
    return {key: rows}


# ─── Projects ────────────────────────────────────────────────────────────


@router.get("/projects")
def api_list_projects(
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    return _list(broker, tenant_id, "projects", "projects")


@router.post("/projects", status_code=201)
def api_create_project(
    body: CreateProjectRequest,
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    if not body.name:
        return JSONResponse({"error": "Project name is required"}, status_code=400)
    try:
        rows = broker.query(
            tenant_id,
            """
            INSERT INTO projects (user_id, name, description, status, priority, budget, due_date, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
            RETURNING *
            """,
            (
                tenant_id,
                body.name,
                body.description,
                body.status or "planning",
                body.priority or "medium",
                body.budget or 0,
                body.dueDate,
            ),
        )
    except NotConfigured:
        return JSONResponse({"error": NOT_CONFIGURED_MESSAGE}, status_code=400)
    return {"project": rows[0] if rows else None, "message": "Project created successfully"}


# ─── Tasks ───────────────────────────────────────────────────────────────


@router.get("/tasks")
def api_list_tasks(
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    return _list(broker, tenant_id, "tasks", "tasks")


@router.post("/tasks", status_code=201)
def api_create_task(
    body: CreateTaskRequest,
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    if not body.title:
        return JSONResponse({"error": "Task title is required"}, status_code=400)
    try:
        rows = broker.query(
            tenant_id,
            """
            INSERT INTO tasks (user_id, project_id, title, description, status, priority, due_date, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
            RETURNING *
            """,
            (
                tenant_id,
                body.projectId,
                body.title,
                body.description,
                body.status or "todo",
                body.priority or "medium",
                body.dueDate,
            ),
        )
    except NotConfigured:
        return JSONResponse({"error": NOT_CONFIGURED_MESSAGE}, status_code=400)
    return {"task": rows[0] if rows else None, "message": "Task created successfully"}


# ─── Team ────────────────────────────────────────────────────────────────


@router.get("/team")
def api_list_team(
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    return _list(broker, tenant_id, "team", "team_members")


@router.post("/team", status_code=201)
def api_create_team_member(
    body: CreateTeamMemberRequest,
    tenant_id: str = Depends(get_tenant_id),
    broker: ConnectionBroker = Depends(get_broker),
):
    if not body.name or not body.email:
        return JSONResponse({"error": "Name and email are required"}, status_code=400)
    try:
        rows = broker.query(
            tenant_id,
            """
            INSERT INTO team_members (user_id, name, role, email, workload, status, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            RETURNING *
            """,
            (
                tenant_id,
                body.name,
                body.role or "Developer",
                body.email,
                body.workload or 0,
                body.status or "available",
            ),
        )
    except NotConfigured:
        return JSONResponse({"error": NOT_CONFIGURED_MESSAGE}, status_code=400)
    return {"member": rows[0] if rows else None, "message": "Team member added successfully"}
