"""Represents the acting user inside the current company (principal)."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from .models import AuthUser, Profile


@dataclass
class Principal:
    """
    Simple object representing the authenticated user in one company.

    Attributes:
        user_id: The identity id from the auth service.
        email: The user's email address.
        company_id: The company every query is scoped to.
        role: The profile role ('admin', 'manager', 'user', 'viewer').
        permissions: Per-module overrides stored on the profile.
    """
    user_id: str
    email: Optional[str]
    company_id: str
    role: str
    permissions: dict[str, dict[str, bool]] = field(default_factory=dict)


def principal_from_profile(user: AuthUser, profile: Profile) -> Principal:
    """Build a Principal from the signed-in user and their company profile."""
    return Principal(
        user_id=user.id,
        email=user.email,
        company_id=profile.company_id,
        role=profile.role,
        permissions=dict(profile.permissions or {}),
    )
