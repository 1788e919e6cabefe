"""Dashboard counters for the current company."""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..backend import BackendClient
from ..models import DashboardStats
from ..principal import Principal
from ..rbac import ensure_permission


def get_dashboard_stats(
    backend: BackendClient,
    principal: Principal,
    today: Optional[date] = None,
) -> DashboardStats:
    """
    Return the dashboard counters.

    Each counter is an exact count query; pending tasks are 'todo' or
    'in_progress', overdue tasks are due before today and not done.
    """
    ensure_permission(principal, "reports", "read")
    company_id = principal.company_id
    today = today or date.today()

    def count(table: str):
        return backend.table(table).eq("company_id", company_id)

    return DashboardStats(
        total_clients=count("clients").count(),
        active_clients=count("clients").eq("status", "active").count(),
        total_proposals=count("proposals").count(),
        approved_proposals=count("proposals").eq("status", "approved").count(),
        total_tasks=count("tasks").count(),
        completed_tasks=count("tasks").eq("status", "done").count(),
        pending_tasks=count("tasks").in_("status", ["todo", "in_progress"]).count(),
        overdue_tasks=(
            count("tasks")
            .lt("due_date", today.isoformat())
            .neq("status", "done")
            .count()
        ),
    )
