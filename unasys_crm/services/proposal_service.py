"""
Services for commercial proposals.

Business rules:
- Each line total is quantity x unit_price.
- The proposal total is the sum of the lines minus the discount, never negative.
- Totals are recomputed whenever the lines or the discount change.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..backend import BackendClient
from ..exceptions import InvalidStatusError, NoRowsError, ProposalNotFoundError
from ..models import PROPOSAL_STATUSES, Proposal
from ..principal import Principal
from ..rbac import ensure_permission
from ..validators import validate_proposal_payload
from .common import audit, ensure_changes

PROPOSAL_COLUMNS = """
    *,
    client:clients(*)
"""


def compute_totals(
    items: List[Dict[str, Any]],
    discount: Optional[float] = None,
) -> Tuple[List[Dict[str, Any]], float]:
    """
    Return the items with their line totals and the proposal total.

    Amounts are rounded to cents.
    """
    priced = []
    subtotal = 0.0
    for item in items:
        line = dict(item)
        line["total"] = round(float(line["quantity"]) * float(line["unit_price"]), 2)
        subtotal += line["total"]
        priced.append(line)
    total = max(round(subtotal - float(discount or 0), 2), 0.0)
    return priced, total


def list_proposals(
    backend: BackendClient,
    principal: Principal,
    status: Optional[str] = None,
) -> List[Proposal]:
    """Return the proposals of the current company, newest first."""
    ensure_permission(principal, "proposals", "read")
    query = (
        backend.table("proposals")
        .select(PROPOSAL_COLUMNS)
        .eq("company_id", principal.company_id)
    )
    if status:
        query = query.eq("status", status)
    rows = query.order("created_at", ascending=False).execute().data
    return [Proposal.model_validate(row) for row in rows or []]


def get_proposal(backend: BackendClient, principal: Principal, proposal_id: str) -> Proposal:
    """
    Retrieve one proposal of the current company.

    Raises:
        ProposalNotFoundError: If the proposal does not exist in this company.
    """
    ensure_permission(principal, "proposals", "read")
    try:
        row = (
            backend.table("proposals")
            .select(PROPOSAL_COLUMNS)
            .eq("id", proposal_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise ProposalNotFoundError(proposal_id)
    return Proposal.model_validate(row)


def create_proposal(
    backend: BackendClient,
    principal: Principal,
    data: Dict[str, Any],
) -> Proposal:
    """
    Create a proposal (draft by default) in the current company.

    Raises:
        PermissionDeniedError: If the profile cannot create proposals.
        ValidationError: If the payload is invalid.
    """
    ensure_permission(principal, "proposals", "create")
    payload = validate_proposal_payload(data)
    payload["items"], payload["total_amount"] = compute_totals(
        payload["items"], payload.get("discount")
    )
    payload["company_id"] = principal.company_id
    payload["created_by"] = principal.user_id

    row = backend.table("proposals").insert(payload).single().execute().data
    proposal = Proposal.model_validate(row)

    audit(
        f"Proposal created: id={proposal.id}, total={proposal.total_amount:.2f}, "
        f"by={principal.email}"
    )
    return proposal


def update_proposal(
    backend: BackendClient,
    principal: Principal,
    proposal_id: str,
    data: Dict[str, Any],
) -> Proposal:
    """
    Update a proposal of the current company.

    When only one of ``items`` / ``discount`` is given, the other one is
    read from the stored proposal to recompute the total.

    Raises:
        ProposalNotFoundError: If the proposal does not exist in this company.
    """
    ensure_permission(principal, "proposals", "update")
    payload = validate_proposal_payload(data, is_update=True)
    ensure_changes(payload)

    if "items" in payload or "discount" in payload:
        if "items" in payload and "discount" in payload:
            items, discount = payload["items"], payload["discount"]
        else:
            current = get_proposal(backend, principal, proposal_id)
            items = payload.get("items", [i.model_dump() for i in current.items])
            discount = payload.get("discount", current.discount)
        payload["items"], payload["total_amount"] = compute_totals(items, discount)

    try:
        row = (
            backend.table("proposals")
            .update(payload)
            .eq("id", proposal_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise ProposalNotFoundError(proposal_id)
    proposal = Proposal.model_validate(row)

    audit(f"Proposal updated: id={proposal.id}, by={principal.email}")
    return proposal


def set_proposal_status(
    backend: BackendClient,
    principal: Principal,
    proposal_id: str,
    status: str,
) -> Proposal:
    """Move a proposal to another status (sent, approved, rejected...)."""
    normalized = status.strip().lower()
    if normalized not in PROPOSAL_STATUSES:
        raise InvalidStatusError(status, PROPOSAL_STATUSES)
    return update_proposal(backend, principal, proposal_id, {"status": normalized})
