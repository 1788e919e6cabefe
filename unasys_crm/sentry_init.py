"""
Logging and Sentry bootstrap.

- Console logging goes through Rich, at LOG_LEVEL.
- Sentry is initialized only if a DSN is provided, so local use is unaffected.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Send application logs to stderr through Rich."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
        force=True,
    )
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def init_sentry() -> None:
    """
    Start error tracking when SENTRY_DSN is configured.

    Failed logins, auth listener errors and every write audited by the
    services are sent as events; unexpected exceptions come through the
    excepthook integration. Without a DSN all sentry_sdk calls are no-ops.
    """
    if not settings.SENTRY_DSN:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.excepthook import ExcepthookIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENV,
            traces_sample_rate=settings.SENTRY_TRACES,
            integrations=[
                ExcepthookIntegration(),   # capture unexpected exceptions
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
        )
    except Exception as exc:  # pragma: no cover
        logging.getLogger(__name__).warning("Sentry init skipped: %s", exc)
