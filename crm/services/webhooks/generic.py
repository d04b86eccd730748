"""Transformer for custom webhooks that already post lead-shaped JSON."""

from __future__ import annotations

from typing import Any

from crm.services.webhooks.base import LeadDraft


class GenericTransformer:
    """Reads lead fields straight from the top level of the payload."""

    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        return LeadDraft.from_fields(payload)
