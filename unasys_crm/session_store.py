"""Local persistence for the auth session and user preferences.

The session file holds the access/refresh tokens, so it is written with
owner-only permissions and encrypted with Fernet when a key is configured.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import sentry_sdk
from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError as PydanticValidationError

from .config import PREFS_FILE_NAME, SESSION_FILE_NAME, settings
from .exceptions import SessionStorageError
from .models import AuthSession

logger = logging.getLogger(__name__)

CURRENT_COMPANY_KEY = "current_company_id"


class SessionStore:
    """Read and write the session file and the preferences file."""

    def __init__(self, directory: Optional[Path] = None, key: Optional[str] = None):
        base = directory or Path.home()
        self.session_path = base / SESSION_FILE_NAME
        self.prefs_path = base / PREFS_FILE_NAME
        self._fernet = Fernet(key.encode()) if key else None

    # Session

    def load_session(self) -> Optional[AuthSession]:
        """Return the stored session, or None if absent or unreadable."""
        if not self.session_path.exists():
            return None
        try:
            raw = self.session_path.read_bytes()
            if self._fernet is not None:
                raw = self._fernet.decrypt(raw)
            return AuthSession.model_validate_json(raw)
        except InvalidToken:
            logger.warning("Stored session cannot be decrypted, ignoring it")
            return None
        except (OSError, PydanticValidationError) as e:
            sentry_sdk.capture_exception(e)
            return None

    def save_session(self, session: AuthSession) -> None:
        raw = session.model_dump_json().encode("utf-8")
        if self._fernet is not None:
            raw = self._fernet.encrypt(raw)
        try:
            self.session_path.write_bytes(raw)
            # Set restrictive permissions (owner only)
            self.session_path.chmod(0o600)
        except OSError as e:
            sentry_sdk.capture_exception(e)
            raise SessionStorageError(e)

    def clear_session(self) -> None:
        try:
            if self.session_path.exists():
                self.session_path.unlink()
        except OSError as e:
            sentry_sdk.capture_exception(e)
            # Clearing is best effort: a stale file is ignored once expired

    # Preferences

    def _load_prefs(self) -> dict[str, Any]:
        if not self.prefs_path.exists():
            return {}
        try:
            data = json.loads(self.prefs_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Preferences file unreadable, starting fresh")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_prefs(self, prefs: dict[str, Any]) -> None:
        try:
            self.prefs_path.write_text(json.dumps(prefs), encoding="utf-8")
        except OSError as e:
            sentry_sdk.capture_exception(e)
            raise SessionStorageError(e)

    def get_current_company_id(self) -> Optional[str]:
        value = self._load_prefs().get(CURRENT_COMPANY_KEY)
        return str(value) if value else None

    def set_current_company_id(self, company_id: Optional[str]) -> None:
        prefs = self._load_prefs()
        if company_id is None:
            prefs.pop(CURRENT_COMPANY_KEY, None)
        else:
            prefs[CURRENT_COMPANY_KEY] = company_id
        self._save_prefs(prefs)


def default_store() -> SessionStore:
    """Store in the user's HOME, encrypted if UNASYS_SESSION_KEY is set."""
    return SessionStore(key=settings.SESSION_KEY)
