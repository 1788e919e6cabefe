"""
Messaging between members of a company.

Messages are rows of the notifications table: each one is addressed to a
single user inside a company and carries a read flag.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..backend import BackendClient
from ..exceptions import MessageNotFoundError, NoRowsError
from ..models import Notification
from ..principal import Principal
from ..rbac import ensure_permission
from ..validators import validate_message_payload
from .common import audit


def _inbox(backend: BackendClient, principal: Principal):
    return (
        backend.table("notifications")
        .eq("user_id", principal.user_id)
        .eq("company_id", principal.company_id)
    )


def list_messages(
    backend: BackendClient,
    principal: Principal,
    unread_only: bool = False,
) -> List[Notification]:
    """Return the principal's messages in the current company, newest first."""
    ensure_permission(principal, "messages", "read")
    query = _inbox(backend, principal).select("*")
    if unread_only:
        query = query.eq("is_read", False)
    rows = query.order("created_at", ascending=False).execute().data
    return [Notification.model_validate(row) for row in rows or []]


def unread_count(backend: BackendClient, principal: Principal) -> int:
    ensure_permission(principal, "messages", "read")
    return _inbox(backend, principal).eq("is_read", False).count()


def send_message(
    backend: BackendClient,
    principal: Principal,
    user_id: str,
    title: str,
    message: str,
    type: str = "info",
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Send a message to a user of the current company.

    Raises:
        PermissionDeniedError: If the profile cannot create messages.
        ValidationError: If a field is missing or the type is unknown.
    """
    ensure_permission(principal, "messages", "create")
    payload = validate_message_payload(
        {"user_id": user_id, "title": title, "message": message, "type": type, "data": data}
    )
    payload["company_id"] = principal.company_id
    payload["is_read"] = False

    row = backend.table("notifications").insert(payload).single().execute().data
    notification = Notification.model_validate(row)

    audit(f"Message sent: id={notification.id}, to={user_id}, by={principal.email}")
    return notification


def mark_as_read(backend: BackendClient, principal: Principal, message_id: str) -> Notification:
    """
    Flag one of the principal's messages as read.

    Raises:
        MessageNotFoundError: If the message is not in the principal's inbox.
    """
    ensure_permission(principal, "messages", "read")
    try:
        row = (
            _inbox(backend, principal)
            .update({"is_read": True})
            .eq("id", message_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise MessageNotFoundError(message_id)
    return Notification.model_validate(row)


def mark_all_as_read(backend: BackendClient, principal: Principal) -> int:
    """Flag every unread message as read; return how many changed."""
    ensure_permission(principal, "messages", "read")
    rows = (
        _inbox(backend, principal)
        .update({"is_read": True})
        .eq("is_read", False)
        .execute()
        .data
    )
    return len(rows or [])
