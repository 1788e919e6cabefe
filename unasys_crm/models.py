"""Typed rows for the remote tables and auth payloads.

Design goals:
- Mirror the remote schema column for column.
- Ignore unknown columns so schema additions never break the client.
- Enumerations are Literal types; pydantic rejects unknown values on load.
"""
from __future__ import annotations

from datetime import date, datetime, timezone, timedelta
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Row(BaseModel):
    """Base class used by all table rows."""

    model_config = ConfigDict(extra="ignore")


# Auth payloads.
class AuthUser(Row):
    """Identity returned by the auth service."""

    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    email_confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def name(self) -> Optional[str]:
        return self.user_metadata.get("name")


class AuthSession(Row):
    """Access/refresh token pair for a signed-in user."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    # Unix timestamp (seconds)
    expires_at: Optional[int] = None
    user: AuthUser

    def is_expired(self, margin: timedelta = timedelta(0)) -> bool:
        if self.expires_at is None:
            return False
        now = datetime.now(timezone.utc) + margin
        return now.timestamp() >= self.expires_at


# Tenants and memberships.
class Company(Row):
    """A customer organization; every domain row is scoped by its id."""

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    document: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    plan: Literal["basic", "professional", "enterprise"] = "basic"
    status: Literal["active", "inactive", "pending", "suspended"] = "active"
    settings: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Profile(Row):
    """Membership linking a user identity to a company with a role."""

    id: str
    user_id: str
    company_id: str
    role: Literal["admin", "manager", "user", "viewer"] = "user"
    permissions: Optional[dict[str, dict[str, bool]]] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Embedded by the tenant lookup (company:companies(*)).
    company: Optional[Company] = None


# Business entities: clients, proposals, tasks, notifications.
class Client(Row):
    """Client of a company."""

    id: str
    company_id: str
    type: Literal["individual", "company"] = "individual"
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    category: Optional[str] = None
    status: Literal["active", "inactive", "prospect"] = "active"
    notes: Optional[str] = None
    custom_fields: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProposalItem(Row):
    """One priced line of a proposal."""

    id: Optional[str] = None
    description: str
    quantity: float = 1
    unit_price: float = 0
    total: float = 0


class Proposal(Row):
    """Commercial proposal sent to a client."""

    id: str
    company_id: str
    client_id: str
    title: str
    description: Optional[str] = None
    status: Literal["draft", "sent", "viewed", "approved", "rejected", "expired"] = "draft"
    total_amount: float = 0
    discount: Optional[float] = None
    items: list[ProposalItem] = Field(default_factory=list)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    client: Optional[Client] = None


class Task(Row):
    """Follow-up task, optionally linked to a client or a proposal."""

    id: str
    company_id: str
    title: str
    description: Optional[str] = None
    status: Literal["todo", "in_progress", "review", "done"] = "todo"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    client_id: Optional[str] = None
    proposal_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Notification(Row):
    """Message delivered to one user inside a company."""

    id: str
    user_id: str
    company_id: str
    type: Literal["info", "success", "warning", "error"] = "info"
    title: str
    message: str
    is_read: bool = False
    data: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


# Aggregates.
class DashboardStats(BaseModel):
    total_clients: int = 0
    active_clients: int = 0
    total_proposals: int = 0
    approved_proposals: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    overdue_tasks: int = 0


class SalesSummary(BaseModel):
    count: int = 0
    revenue: float = 0
    average_ticket: float = 0


# Enumerations exposed for validation and CLI help.
CLIENT_TYPES = ["individual", "company"]
CLIENT_STATUSES = ["active", "inactive", "prospect"]
PROPOSAL_STATUSES = ["draft", "sent", "viewed", "approved", "rejected", "expired"]
TASK_STATUSES = ["todo", "in_progress", "review", "done"]
TASK_PRIORITIES = ["low", "medium", "high", "urgent"]
NOTIFICATION_TYPES = ["info", "success", "warning", "error"]
