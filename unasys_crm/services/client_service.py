"""
Services for listing, creating and updating clients.

Business rules:
- Every query is scoped to the principal's current company.
- Empty optional fields are stored as null.
- Module permissions are checked before each call ('clients').
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ..backend import BackendClient
from ..exceptions import ClientNotFoundError, NoRowsError
from ..models import Client
from ..principal import Principal
from ..rbac import ensure_permission
from ..validators import validate_client_payload
from .common import audit, ensure_changes


def list_clients(backend: BackendClient, principal: Principal) -> List[Client]:
    """
    Return the clients of the current company, newest first.

    Raises:
        PermissionDeniedError: If the profile cannot read clients.
    """
    ensure_permission(principal, "clients", "read")
    rows = (
        backend.table("clients")
        .select("*")
        .eq("company_id", principal.company_id)
        .order("created_at", ascending=False)
        .execute()
        .data
    )
    return [Client.model_validate(row) for row in rows or []]


def filter_clients(
    clients: Iterable[Client],
    search: str = "",
    status: str = "all",
    client_type: str = "all",
) -> List[Client]:
    """
    Filter already loaded clients.

    The search term matches name and email case-insensitively and is a
    plain substring match on the phone number.
    """
    term = search.strip().lower()

    def matches(client: Client) -> bool:
        if term:
            found = (
                term in client.name.lower()
                or (client.email is not None and term in client.email.lower())
                or (client.phone is not None and search.strip() in client.phone)
            )
            if not found:
                return False
        if status != "all" and client.status != status:
            return False
        if client_type != "all" and client.type != client_type:
            return False
        return True

    return [c for c in clients if matches(c)]


def get_client(backend: BackendClient, principal: Principal, client_id: str) -> Client:
    """
    Retrieve one client of the current company.

    Raises:
        ClientNotFoundError: If the client does not exist in this company.
    """
    ensure_permission(principal, "clients", "read")
    try:
        row = (
            backend.table("clients")
            .select("*")
            .eq("id", client_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise ClientNotFoundError(client_id)
    return Client.model_validate(row)


def create_client(
    backend: BackendClient,
    principal: Principal,
    data: Dict[str, Any],
) -> Client:
    """
    Create a client in the current company.

    The client is attributed to the principal (created_by).

    Raises:
        PermissionDeniedError: If the profile cannot create clients.
        ValidationError: If the payload is invalid.
    """
    ensure_permission(principal, "clients", "create")
    payload = validate_client_payload(data)
    payload["company_id"] = principal.company_id
    payload["created_by"] = principal.user_id

    row = backend.table("clients").insert(payload).single().execute().data
    client = Client.model_validate(row)

    audit(f"Client created: id={client.id}, name={client.name}, by={principal.email}")
    return client


def update_client(
    backend: BackendClient,
    principal: Principal,
    client_id: str,
    data: Dict[str, Any],
) -> Client:
    """
    Update a client of the current company.

    Raises:
        PermissionDeniedError: If the profile cannot update clients.
        ValidationError: If the payload is invalid or empty.
        ClientNotFoundError: If the client does not exist in this company.
    """
    ensure_permission(principal, "clients", "update")
    payload = validate_client_payload(data, is_update=True)
    ensure_changes(payload)

    try:
        row = (
            backend.table("clients")
            .update(payload)
            .eq("id", client_id)
            .eq("company_id", principal.company_id)
            .single()
            .execute()
            .data
        )
    except NoRowsError:
        raise ClientNotFoundError(client_id)
    client = Client.model_validate(row)

    audit(f"Client updated: id={client.id}, by={principal.email}")
    return client
