"""
Authentication against the hosted identity service.

This module provides:
- Session bootstrap from local storage (with token refresh)
- Sign in / sign up / sign out / password recovery
- Session-change notifications for interested components
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

import jwt
import sentry_sdk

from .backend import AUTH_PREFIX, BackendClient
from .config import JWT_ALGORITHM, JWT_AUDIENCE, SESSION_REFRESH_MARGIN, settings
from .exceptions import (
    AuthenticationError,
    BackendError,
    BackendUnavailableError,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    InvalidEmailError,
    NotAuthenticatedError,
    SessionExpiredError,
    TokenInvalidError,
    UserAlreadyRegisteredError,
    ValidationError,
)
from .models import AuthSession, AuthUser
from .session_store import SessionStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2


class AuthChangeEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


AuthCallback = Callable[[AuthChangeEvent, Optional[AuthSession]], Any]


@dataclass
class Subscription:
    """Handle returned by ``on_auth_state_change``."""

    id: int
    callback: AuthCallback
    _manager: "AuthManager" = field(repr=False)

    def unsubscribe(self) -> None:
        self._manager._subscribers.pop(self.id, None)


# =============================================================================
# TOKEN HELPERS
# =============================================================================

def decode_access_token(token: str) -> dict[str, Any]:
    """
    Return the claims of an access token.

    The signature is verified only when UNASYS_JWT_SECRET is configured.
    Expiry is not enforced here; callers compare ``expires_at`` instead so
    an expired session can still be refreshed.

    Raises:
        TokenInvalidError: If the token is malformed or its signature is wrong.
    """
    try:
        if settings.JWT_SECRET:
            return jwt.decode(
                token,
                settings.JWT_SECRET,
                algorithms=[JWT_ALGORITHM],
                audience=JWT_AUDIENCE,
                options={"verify_exp": False},
            )
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError as exc:
        sentry_sdk.capture_exception(exc)
        raise TokenInvalidError() from exc


def _session_from_payload(payload: dict[str, Any]) -> AuthSession:
    """Build a session from a token response, filling ``expires_at`` if absent."""
    session = AuthSession.model_validate(payload)
    claims = decode_access_token(session.access_token)

    if session.expires_at is None:
        if "exp" in claims:
            session.expires_at = int(claims["exp"])
        elif session.expires_in is not None:
            now = datetime.now(timezone.utc)
            session.expires_at = int(now.timestamp()) + session.expires_in
    return session


def _translate_auth_error(exc: BackendError) -> AuthenticationError:
    """Map auth service messages to CRM exceptions."""
    message = exc.message or ""
    if "Invalid login credentials" in message:
        return InvalidCredentialsError()
    if "Email not confirmed" in message:
        return EmailNotConfirmedError()
    if "already registered" in message:
        return UserAlreadyRegisteredError()
    return AuthenticationError(message or "Erreur d'authentification")


def validate_sign_up(email: str, password: str, name: str) -> None:
    """
    Validate sign-up input before calling the backend.

    Raises:
        ValidationError: If a field does not meet the requirements.
    """
    if not name or len(name.strip()) < MIN_NAME_LENGTH:
        raise ValidationError(
            f"Le nom doit contenir au moins {MIN_NAME_LENGTH} caractères", field="name"
        )
    if not email or not EMAIL_RE.match(email):
        raise InvalidEmailError(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères",
            field="password",
        )


# =============================================================================
# AUTH MANAGER
# =============================================================================

class AuthManager:
    """
    Owns the current session and tells subscribers when it changes.

    Attributes:
        session: The current session, or None when signed out.
        user: The signed-in user, or None.
        loading: True until ``bootstrap()`` has completed.
    """

    def __init__(self, backend: BackendClient, store: SessionStore):
        self.backend = backend
        self.store = store
        self.session: Optional[AuthSession] = None
        self.user: Optional[AuthUser] = None
        self.loading = True
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        """Register a callback called as ``callback(event, session)``."""
        sub = Subscription(next(self._ids), callback, self)
        self._subscribers[sub.id] = sub
        return sub

    def _emit(self, event: AuthChangeEvent) -> None:
        email = self.user.email if self.user else None
        logger.info("Auth state changed: %s %s", event.value, email or "")
        for sub in list(self._subscribers.values()):
            try:
                sub.callback(event, self.session)
            except Exception as exc:
                # One failing listener must not prevent the others
                logger.exception("Auth listener %s failed", sub.id)
                sentry_sdk.capture_exception(exc)

    def _apply(self, session: Optional[AuthSession]) -> None:
        self.session = session
        self.user = session.user if session else None
        self.backend.set_auth(session.access_token if session else None)

    def _set_session(self, session: AuthSession, event: AuthChangeEvent) -> None:
        self._apply(session)
        self.store.save_session(session)
        self._emit(event)

    def _clear(self) -> None:
        had_session = self.session is not None
        self._apply(None)
        self.store.clear_session()
        if had_session:
            self._emit(AuthChangeEvent.SIGNED_OUT)

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def bootstrap(self) -> Optional[AuthSession]:
        """
        Restore the stored session, refreshing it if it has expired.

        Always finishes by emitting INITIAL_SESSION (with or without a session).
        """
        session = self.store.load_session()

        if session is not None:
            try:
                decode_access_token(session.access_token)
                if session.is_expired(SESSION_REFRESH_MARGIN):
                    session = self._request_refresh(session)
                    self.store.save_session(session)
            except BackendUnavailableError as exc:
                logger.warning("Error getting session: %s", exc)
                session = None
            except AuthenticationError as exc:
                logger.info("Stored session discarded: %s", exc)
                self.store.clear_session()
                session = None

        self._apply(session)
        self.loading = False
        self._emit(AuthChangeEvent.INITIAL_SESSION)
        return session

    def _request_refresh(self, session: AuthSession) -> AuthSession:
        if not session.refresh_token:
            raise SessionExpiredError()
        try:
            resp = self.backend.request(
                "POST",
                f"{AUTH_PREFIX}/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": session.refresh_token},
            )
        except BackendUnavailableError:
            raise
        except BackendError as exc:
            sentry_sdk.capture_exception(exc)
            raise SessionExpiredError() from exc
        return _session_from_payload(resp.json())

    def refresh_session(self) -> AuthSession:
        """
        Exchange the refresh token for a new session.

        Raises:
            NotAuthenticatedError: If there is no session.
            SessionExpiredError: If the refresh is rejected (session is cleared).
        """
        if self.session is None:
            raise NotAuthenticatedError()
        try:
            session = self._request_refresh(self.session)
        except SessionExpiredError:
            self._clear()
            raise
        self._set_session(session, AuthChangeEvent.TOKEN_REFRESHED)
        return session

    def get_session(self) -> Optional[AuthSession]:
        """Return the current session, refreshed if it is about to expire."""
        if self.session is not None and self.session.is_expired(SESSION_REFRESH_MARGIN):
            return self.refresh_session()
        return self.session

    def require_user(self) -> AuthUser:
        """
        Return the signed-in user.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
        """
        if self.get_session() is None or self.user is None:
            raise NotAuthenticatedError()
        return self.user

    def fetch_user(self) -> AuthUser:
        """Ask the auth service for the user behind the current token."""
        self.require_user()
        resp = self.backend.request("GET", f"{AUTH_PREFIX}/user")
        return AuthUser.model_validate(resp.json())

    # -------------------------------------------------------------------------
    # Identity operations
    # -------------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Raises:
            InvalidCredentialsError: If email or password is incorrect.
            EmailNotConfirmedError: If the account is not confirmed yet.
            AuthenticationError: For any other refusal.
        """
        if not email or not password:
            raise InvalidCredentialsError()

        self.loading = True
        try:
            resp = self.backend.request(
                "POST",
                f"{AUTH_PREFIX}/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except BackendUnavailableError:
            raise
        except BackendError as exc:
            # Log failed attempt (without revealing if user exists)
            sentry_sdk.capture_message(
                f"Failed login attempt for email: {email}",
                level="warning",
            )
            raise _translate_auth_error(exc) from exc
        finally:
            self.loading = False

        session = _session_from_payload(resp.json())
        self._set_session(session, AuthChangeEvent.SIGNED_IN)

        sentry_sdk.capture_message(f"User logged in: {email}", level="info")
        return session

    def sign_up(self, email: str, password: str, name: str) -> Optional[AuthSession]:
        """
        Create an account. Returns a session when the service signs the
        user in straight away, None when an email confirmation is pending.
        """
        validate_sign_up(email, password, name)

        self.loading = True
        try:
            resp = self.backend.request(
                "POST",
                f"{AUTH_PREFIX}/signup",
                params={"redirect_to": f"{settings.SITE_URL}/dashboard"},
                json={"email": email, "password": password, "data": {"name": name}},
            )
        except BackendUnavailableError:
            raise
        except BackendError as exc:
            raise _translate_auth_error(exc) from exc
        finally:
            self.loading = False

        payload = resp.json()
        sentry_sdk.capture_message(f"Account created: {email}", level="info")

        if "access_token" not in payload:
            return None
        session = _session_from_payload(payload)
        self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return session

    def sign_out(self) -> None:
        """Revoke the session remotely if possible; local state is always cleared."""
        if self.session is not None:
            try:
                self.backend.request("POST", f"{AUTH_PREFIX}/logout")
            except BackendError as exc:
                logger.warning("Sign out error: %s", exc)
                sentry_sdk.capture_exception(exc)
        self._clear()

    def reset_password(self, email: str) -> None:
        """Send a password recovery email."""
        if not email or not EMAIL_RE.match(email):
            raise InvalidEmailError(email)
        try:
            self.backend.request(
                "POST",
                f"{AUTH_PREFIX}/recover",
                params={"redirect_to": f"{settings.SITE_URL}/reset-password"},
                json={"email": email},
            )
        except BackendUnavailableError:
            raise
        except BackendError as exc:
            raise _translate_auth_error(exc) from exc
