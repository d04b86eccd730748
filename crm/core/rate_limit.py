"""Rate limiting configuration for the CRM API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from crm.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# Use in-memory storage for tests (no shared backend)
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.RATE_LIMIT_STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)


def webhook_rate_limit() -> str:
    """Per-IP limit string for inbound webhook deliveries."""
    return f"{settings.RATE_LIMIT_WEBHOOK}/minute"
