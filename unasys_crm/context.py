"""Wiring of the backend client, session store, auth and company context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .auth import AuthManager
from .backend import BackendClient, get_backend
from .company import CompanyContext
from .principal import Principal
from .session_store import SessionStore, default_store


@dataclass
class AppContext:
    backend: BackendClient
    store: SessionStore
    auth: AuthManager
    company: CompanyContext

    def principal(self) -> Principal:
        return self.company.principal()


def build_context(
    backend: Optional[BackendClient] = None,
    store: Optional[SessionStore] = None,
) -> AppContext:
    """
    Create the application objects and restore the stored session.

    The company context subscribes before the bootstrap so that the
    initial session triggers tenant resolution.
    """
    backend = backend or get_backend()
    store = store or default_store()
    auth = AuthManager(backend, store)
    company = CompanyContext(backend, auth, store)
    auth.bootstrap()
    return AppContext(backend=backend, store=store, auth=auth, company=company)
