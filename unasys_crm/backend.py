"""Hosted backend client utilities."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .config import settings
from .exceptions import (
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"


def _error_from_response(resp: requests.Response) -> BackendError:
    """Build a BackendError from an error response of either service."""
    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    message = (
        payload.get("message")
        or payload.get("msg")
        or payload.get("error_description")
        or payload.get("error")
        or resp.text
        or f"HTTP {resp.status_code}"
    )
    code = payload.get("code") or payload.get("error_code")

    return BackendError(
        str(message),
        status=resp.status_code,
        code=str(code) if code is not None else None,
        details=payload.get("details"),
        hint=payload.get("hint"),
    )


class BackendClient:
    """
    Thin HTTP client for the hosted backend (auth service + REST store).

    One instance is shared by the whole application. The bearer token is
    the anon key until a user signs in, then the user's access token.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        http: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.http = http or requests.Session()
        self.timeout = timeout
        self.access_token: Optional[str] = None

    def set_auth(self, access_token: Optional[str]) -> None:
        """Use the given user token for subsequent requests (None -> anon)."""
        self.access_token = access_token

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        """
        Send a request and return the response.

        Raises:
            BackendUnavailableError: If the backend cannot be reached.
            BackendError: If the backend answers with an error status.
        """
        url = f"{self.url}{path}"
        logger.debug("%s %s params=%s", method, path, params)

        try:
            resp = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Backend unreachable: %s %s (%s)", method, path, exc)
            raise BackendUnavailableError(str(exc)) from exc

        if resp.status_code >= 400:
            error = _error_from_response(resp)
            logger.info(
                "Backend error %s on %s %s: %s",
                resp.status_code, method, path, error.message,
            )
            raise error

        return resp

    def table(self, name: str):
        """Start a query on a REST table."""
        from .query import QueryBuilder

        return QueryBuilder(self, name)


#  Shared client
_backend: Optional[BackendClient] = None


def get_backend() -> BackendClient:
    """
    Return the process-wide backend client, creating it on first use.

    Raises:
        ConfigurationError: If the backend url or anon key is missing.
    """
    global _backend
    if _backend is None:
        missing = settings.missing_backend_vars()
        if missing:
            raise ConfigurationError(missing)
        _backend = BackendClient(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            timeout=settings.HTTP_TIMEOUT,
        )
    return _backend


def reset_backend() -> None:
    """Forget the shared client (used when settings change)."""
    global _backend
    _backend = None
