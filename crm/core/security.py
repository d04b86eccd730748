"""Security utilities for JWT session tokens and webhook signing."""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from crm.core.config import settings

SIGNATURE_PREFIX = "sha256="


# =============================================================================
# Session Token (JWT bearer)
# =============================================================================

def create_access_token(user_id: UUID, token_version: int) -> str:
    """
    Create signed access JWT.

    Always signs with current secret (JWT_SECRET).
    """
    payload = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify access JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Webhook URL tokens and secrets
# =============================================================================

def generate_webhook_token() -> str:
    """Random 128-bit hex token used as the inbound URL path segment."""
    return secrets.token_hex(16)


def generate_webhook_secret() -> str:
    """Random 256-bit hex secret used for HMAC signing."""
    return secrets.token_hex(32)


def compute_webhook_signature(secret: str, payload: bytes) -> str:
    """Return the ``sha256=<hex>`` signature header value for a payload."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(secret: str, payload: bytes, signature: str | None) -> bool:
    """
    Verify an HMAC-SHA256 signature over the raw payload.

    Accepts the value with or without the ``sha256=`` prefix.
    Comparison is constant-time.
    """
    if not secret or not signature:
        return False
    provided = signature.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = compute_webhook_signature(secret, payload)[len(SIGNATURE_PREFIX):]
    return hmac.compare_digest(expected.encode(), provided.lower().encode())

