"""Application configuration.

Purpose:
- Centralize runtime configuration (backend url, keys, env flags, etc.).
- Avoid hard-coding values in the rest of the codebase.

Notes:
- Default values are safe for local development.
- Values can be overridden with environment variables.
"""
from __future__ import annotations

import os
from datetime import timedelta
from pydantic import BaseModel

# SESSION CONFIGURATION
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"
SESSION_REFRESH_MARGIN = timedelta(seconds=60)
SESSION_FILE_NAME = ".unasys_session"  # Stored in user HOME directory
PREFS_FILE_NAME = ".unasys_prefs"      # Remembered company selection


# APPLICATION SETTINGS
class Settings(BaseModel):
    """Typed config object for all application settings."""

    # Hosted backend (auth + REST store)
    SUPABASE_URL: str = os.getenv("UNASYS_SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("UNASYS_SUPABASE_ANON_KEY", "")

    # Optional JWT secret; when set, access tokens are signature-checked
    JWT_SECRET: str | None = os.getenv("UNASYS_JWT_SECRET")

    # Seconds before a backend request gives up
    HTTP_TIMEOUT: float = float(os.getenv("UNASYS_HTTP_TIMEOUT", "10"))

    # Optional Fernet key used to encrypt the stored session
    SESSION_KEY: str | None = os.getenv("UNASYS_SESSION_KEY")

    # Company used to bootstrap a profile when none can be loaded
    DEMO_COMPANY_EMAIL: str = os.getenv(
        "UNASYS_DEMO_COMPANY_EMAIL", "demo@unasyscrm.com.br"
    )

    # Base url for sign-up confirmation and password recovery links
    SITE_URL: str = os.getenv("UNASYS_SITE_URL", "http://localhost:5173")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")

    # Optional Sentry DSN for error tracking
    SENTRY_DSN: str | None = os.getenv("SENTRY_DSN")

    # Environment name used by Sentry
    SENTRY_ENV: str = os.getenv("SENTRY_ENV", "development")

    # Sample rate for tracing
    SENTRY_TRACES: float = float(os.getenv("SENTRY_TRACES", "0.0"))

    def missing_backend_vars(self) -> list[str]:
        """Return the names of the backend variables that are not set."""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("UNASYS_SUPABASE_URL")
        if not self.SUPABASE_ANON_KEY:
            missing.append("UNASYS_SUPABASE_ANON_KEY")
        return missing


# Shared settings instance
settings = Settings()
