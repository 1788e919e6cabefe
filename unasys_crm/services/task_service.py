"""Services for follow-up tasks."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from ..backend import BackendClient
from ..exceptions import InvalidStatusError, NoRowsError, TaskNotFoundError
from ..models import TASK_STATUSES, Task
from ..principal import Principal
from ..rbac import ensure_permission
from ..validators import validate_task_payload
from .common import audit, ensure_changes


def list_tasks(
    backend: BackendClient,
    principal: Principal,
    *,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[str] = None,
) -> List[Task]:
    """Return the tasks of the current company, newest first, optionally filtered."""
    ensure_permission(principal, "tasks", "read")
    query = backend.table("tasks").select("*").eq("company_id", principal.company_id)
    if status:
        query = query.eq("status", status)
    if priority:
        query = query.eq("priority", priority)
    if assigned_to:
        query = query.eq("assigned_to", assigned_to)
    rows = query.order("created_at", ascending=False).execute().data
    return [Task.model_validate(row) for row in rows or []]


def list_overdue_tasks(
    backend: BackendClient,
    principal: Principal,
    today: Optional[date] = None,
) -> List[Task]:
    """Return the tasks due before today that are not done, oldest due first."""
    ensure_permission(principal, "tasks", "read")
    today = today or date.today()
    rows = (
        backend.table("tasks")
        .select("*")
        .eq("company_id", principal.company_id)
        .lt("due_date", today.isoformat())
        .neq("status", "done")
        .order("due_date")
        .execute()
        .data
    )
    return [Task.model_validate(row) for row in rows or []]


def get_task(backend: BackendClient, principal: Principal, task_id: str) -> Task:
    """
    Retrieve one task of the current company.

    Raises:
        TaskNotFoundError: If the task does not exist in this company.
    """
    ensure_permission(principal, "tasks", "read")
    try:
        row = (
            backend.table("tasks")
            .select("*")
            .eq("id", task_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise TaskNotFoundError(task_id)
    return Task.model_validate(row)


def create_task(backend: BackendClient, principal: Principal, data: Dict[str, Any]) -> Task:
    """Create a task (todo / medium by default) in the current company."""
    ensure_permission(principal, "tasks", "create")
    payload = validate_task_payload(data)
    payload["company_id"] = principal.company_id
    payload["created_by"] = principal.user_id

    row = backend.table("tasks").insert(payload).single().execute().data
    task = Task.model_validate(row)

    audit(f"Task created: id={task.id}, title={task.title}, by={principal.email}")
    return task


def update_task(
    backend: BackendClient,
    principal: Principal,
    task_id: str,
    data: Dict[str, Any],
) -> Task:
    """
    Update a task of the current company.

    Raises:
        TaskNotFoundError: If the task does not exist in this company.
    """
    ensure_permission(principal, "tasks", "update")
    payload = validate_task_payload(data, is_update=True)
    ensure_changes(payload)

    try:
        row = (
            backend.table("tasks")
            .update(payload)
            .eq("id", task_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise TaskNotFoundError(task_id)
    task = Task.model_validate(row)

    audit(f"Task updated: id={task.id}, by={principal.email}")
    return task


def set_task_status(
    backend: BackendClient,
    principal: Principal,
    task_id: str,
    status: str,
) -> Task:
    normalized = status.strip().lower()
    if normalized not in TASK_STATUSES:
        raise InvalidStatusError(status, TASK_STATUSES)
    return update_task(backend, principal, task_id, {"status": normalized})
