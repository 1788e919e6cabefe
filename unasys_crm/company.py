"""
Company (tenant) resolution for the signed-in user.

Flow:
- When the user changes, load the active profiles of that user joined to
  their company.
- Pick the current company: the remembered one if still available,
  otherwise the first one. Remember the choice.
- If the profiles cannot be loaded, try once to attach the user to the
  demo company as admin and load again.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import sentry_sdk

from .auth import AuthChangeEvent, AuthManager
from .backend import BackendClient
from .config import settings
from .exceptions import (
    BackendError,
    CompanyLoadError,
    CompanyNotFoundError,
    CRMException,
    NoCompanySelectedError,
)
from .models import AuthSession, Company, Profile
from .principal import Principal, principal_from_profile
from .rbac import DEMO_ADMIN_PERMISSIONS
from .session_store import SessionStore

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = """
    *,
    company:companies(*)
"""


class CompanyContext:
    """
    Current company, available companies and profiles of the signed-in user.

    The context follows the auth manager: it reloads on sign-in and clears
    itself on sign-out.
    """

    def __init__(
        self,
        backend: BackendClient,
        auth: AuthManager,
        store: SessionStore,
        *,
        demo_company_email: Optional[str] = None,
    ):
        self.backend = backend
        self.auth = auth
        self.store = store
        self.demo_company_email = demo_company_email or settings.DEMO_COMPANY_EMAIL

        self.current_company: Optional[Company] = None
        self.companies: list[Company] = []
        self.profiles: list[Profile] = []
        self.loading = True

        self._user_id: Optional[str] = None
        self._subscription = auth.on_auth_state_change(self._on_auth_change)

    def _on_auth_change(self, event: AuthChangeEvent, session: Optional[AuthSession]) -> None:
        user_id = session.user.id if session else None
        if event is not AuthChangeEvent.INITIAL_SESSION and user_id == self._user_id:
            return
        try:
            self.fetch_companies()
        except CRMException as exc:
            logger.error("Error fetching companies: %s", exc)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _reset(self) -> None:
        self.current_company = None
        self.companies = []
        self.profiles = []

    def _select_profiles(self, user_id: str) -> list[dict[str, Any]]:
        result = (
            self.backend.table("profiles")
            .select(PROFILE_COLUMNS)
            .eq("user_id", user_id)
            .eq("is_active", True)
            .execute()
        )
        return result.data or []

    def _attach_demo_profile(self, user_id: str) -> Optional[list[dict[str, Any]]]:
        """Create an admin profile in the demo company and reload the profiles."""
        logger.info("Attempting to create profile for user %s", user_id)
        try:
            demo = (
                self.backend.table("companies")
                .select("id")
                .eq("email", self.demo_company_email)
                .maybe_single()
                .execute()
                .data
            )
            if not demo:
                return None

            self.backend.table("profiles").insert(
                {
                    "user_id": user_id,
                    "company_id": demo["id"],
                    "role": "admin",
                    "permissions": DEMO_ADMIN_PERMISSIONS,
                    "is_active": True,
                },
                returning=False,
            ).execute()

            sentry_sdk.capture_message(
                f"Demo profile created for user {user_id}",
                level="info",
            )
            logger.info("Profile created, retrying fetch")
            return self._select_profiles(user_id)
        except BackendError as exc:
            logger.warning("Demo profile bootstrap failed: %s", exc)
            return None

    def fetch_companies(self) -> list[Company]:
        """
        Load profiles and companies of the signed-in user and select one.

        Returns:
            The companies available to the user (empty when signed out).

        Raises:
            CompanyLoadError: If the profiles cannot be loaded, even after
                the demo-company fallback.
        """
        user = self.auth.user
        if user is None:
            logger.debug("No user, skipping company fetch")
            self._reset()
            self._user_id = None
            self.loading = False
            return []

        self.loading = True
        if user.id != self._user_id:
            # Never keep another user's profiles while the new ones load
            self._reset()
        self._user_id = user.id
        try:
            logger.debug("Fetching companies for user %s (%s)", user.email, user.id)
            try:
                rows = self._select_profiles(user.id)
            except BackendError as exc:
                logger.error("Error fetching profiles: %s", exc)
                rows = self._attach_demo_profile(user.id)
                if rows is None:
                    sentry_sdk.capture_exception(exc)
                    raise CompanyLoadError(exc.message) from exc

            profiles = [Profile.model_validate(row) for row in rows]
            companies = [p.company for p in profiles if p.company is not None]
            self.profiles = profiles
            self.companies = companies

            saved_id = self.store.get_current_company_id()
            selected = self._find(saved_id) if saved_id else None
            if selected is None and companies:
                selected = companies[0]
                logger.debug("Using first available company: %s", selected.name)

            self.current_company = selected
            if selected is not None:
                self.store.set_current_company_id(selected.id)
            return companies
        finally:
            self.loading = False

    def refresh_companies(self) -> list[Company]:
        self.loading = True
        return self.fetch_companies()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def _find(self, company_id: str) -> Optional[Company]:
        return next((c for c in self.companies if c.id == company_id), None)

    def switch_company(self, company_id: str) -> Company:
        """
        Make ``company_id`` the current company and remember it.

        Raises:
            CompanyNotFoundError: If the user has no profile in that company.
        """
        company = self._find(company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)

        self.current_company = company
        self.store.set_current_company_id(company.id)
        logger.info("Company switched to %s", company.name)
        return company

    @property
    def current_profile(self) -> Optional[Profile]:
        if self.current_company is None:
            return None
        return next(
            (p for p in self.profiles if p.company_id == self.current_company.id),
            None,
        )

    def principal(self) -> Principal:
        """
        Return the acting principal for the current company.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            NoCompanySelectedError: If no company is available.
        """
        user = self.auth.require_user()
        profile = self.current_profile
        if profile is None:
            raise NoCompanySelectedError()
        return principal_from_profile(user, profile)
