"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    workspace_id: UUID | str | None = None,
    endpoint_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict for ``logger.*(..., extra=...)``."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if workspace_id:
        context["workspace_id"] = str(workspace_id)
    if endpoint_id:
        context["endpoint_id"] = str(endpoint_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
