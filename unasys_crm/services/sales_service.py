"""
Sales are the approved proposals of a company.

There is no separate sales table: revenue figures are derived from the
proposals whose status is 'approved'.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from ..backend import BackendClient
from ..models import Proposal, SalesSummary
from ..principal import Principal
from ..rbac import ensure_permission
from .proposal_service import PROPOSAL_COLUMNS


def list_sales(
    backend: BackendClient,
    principal: Principal,
    since: Optional[date] = None,
) -> List[Proposal]:
    """Return approved proposals, most recently updated first."""
    ensure_permission(principal, "sales", "read")
    query = (
        backend.table("proposals")
        .select(PROPOSAL_COLUMNS)
        .eq("company_id", principal.company_id)
        .eq("status", "approved")
    )
    if since is not None:
        query = query.gte("updated_at", since.isoformat())
    rows = query.order("updated_at", ascending=False).execute().data
    return [Proposal.model_validate(row) for row in rows or []]


def summarize_sales(sales: Iterable[Proposal]) -> SalesSummary:
    amounts = [p.total_amount for p in sales]
    if not amounts:
        return SalesSummary()
    revenue = round(sum(amounts), 2)
    return SalesSummary(
        count=len(amounts),
        revenue=revenue,
        average_ticket=round(revenue / len(amounts), 2),
    )


def sales_summary(
    backend: BackendClient,
    principal: Principal,
    since: Optional[date] = None,
) -> SalesSummary:
    """Count, revenue and average ticket of the approved proposals."""
    return summarize_sales(list_sales(backend, principal, since))
