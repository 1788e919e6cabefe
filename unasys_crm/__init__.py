"""
UNASYS CRM Package.

A command line client for a multi-company CRM (clients, proposals,
tasks, sales and messages) backed by a hosted auth service and REST store,
with per-profile module permissions.
"""

__version__ = "1.0.0"
__author__ = "UNASYS"

# Main entry points
from .auth import AuthChangeEvent, AuthManager
from .backend import BackendClient, get_backend
from .company import CompanyContext
from .context import AppContext, build_context
from .principal import Principal

__all__ = [
    "AuthChangeEvent",
    "AuthManager",
    "BackendClient",
    "get_backend",
    "CompanyContext",
    "AppContext",
    "build_context",
    "Principal",
]
