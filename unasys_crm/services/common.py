"""Helpers shared by the service modules."""

from __future__ import annotations

import logging

import sentry_sdk

from ..exceptions import ValidationError

logger = logging.getLogger("unasys_crm.audit")


def audit(message: str, level: str = "info") -> None:
    """Record a write operation in the log and in Sentry."""
    logger.log(logging.WARNING if level == "warning" else logging.INFO, message)
    sentry_sdk.capture_message(message, level=level)


def ensure_changes(payload: dict) -> None:
    """Refuse an update that would change nothing."""
    if not payload:
        raise ValidationError("Aucune modification fournie.")
