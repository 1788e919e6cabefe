"""
Business services for the CRM client.

Each service takes the backend client and the acting principal, checks the
module permission and runs one query scoped to the principal's company.
"""

from .client_service import (
    list_clients,
    filter_clients,
    get_client,
    create_client,
    update_client,
)

from .proposal_service import (
    compute_totals,
    list_proposals,
    get_proposal,
    create_proposal,
    update_proposal,
    set_proposal_status,
)

from .task_service import (
    list_tasks,
    list_overdue_tasks,
    get_task,
    create_task,
    update_task,
    set_task_status,
)

from .sales_service import (
    list_sales,
    summarize_sales,
    sales_summary,
)

from .message_service import (
    list_messages,
    unread_count,
    send_message,
    mark_as_read,
    mark_all_as_read,
)

from .dashboard_service import get_dashboard_stats

__all__ = [
    # Client service
    "list_clients",
    "filter_clients",
    "get_client",
    "create_client",
    "update_client",
    # Proposal service
    "compute_totals",
    "list_proposals",
    "get_proposal",
    "create_proposal",
    "update_proposal",
    "set_proposal_status",
    # Task service
    "list_tasks",
    "list_overdue_tasks",
    "get_task",
    "create_task",
    "update_task",
    "set_task_status",
    # Sales service
    "list_sales",
    "summarize_sales",
    "sales_summary",
    # Message service
    "list_messages",
    "unread_count",
    "send_message",
    "mark_as_read",
    "mark_all_as_read",
    # Dashboard
    "get_dashboard_stats",
]
