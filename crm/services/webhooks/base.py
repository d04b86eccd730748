"""Transformer interface and the canonical lead draft."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from crm.db.enums import DEFAULT_LEAD_SOURCE

UNKNOWN_NAME = "Unknown"


class TransformationError(ValueError):
    """Payload cannot be turned into a lead."""


@dataclass
class LeadDraft:
    """Provider-independent lead fields produced by a transformer."""
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    source: str = DEFAULT_LEAD_SOURCE
    value: float = 0
    status: str | None = None  # None -> workspace default
    tags: list[str] = field(default_factory=list)
    notes: str | None = None
    custom_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "LeadDraft":
        """Apply the shared field policy to a flat mapping of extracted values."""
        custom_fields = fields.get("custom_fields")
        tags = fields.get("tags")
        return cls(
            name=resolve_name(fields),
            email=_text(fields.get("email")),
            phone=_text(fields.get("phone")),
            company=_text(fields.get("company")),
            source=_text(fields.get("source")) or DEFAULT_LEAD_SOURCE,
            value=parse_value(fields.get("value")),
            status=_text(fields.get("status")),
            tags=[str(t) for t in tags if t is not None] if isinstance(tags, list) else [],
            notes=_text(fields.get("notes")),
            custom_fields=dict(custom_fields) if isinstance(custom_fields, Mapping) else {},
        )


class PayloadTransformer(Protocol):
    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        """Map a decoded JSON object onto a LeadDraft."""


# =============================================================================
# Field helpers
# =============================================================================

def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def resolve_name(fields: Mapping[str, Any]) -> str:
    """
    Pick the lead name.

    Order: name, then "first_name last_name", then full_name, then "Unknown".
    """
    name = _text(fields.get("name"))
    if name:
        return name
    joined = " ".join(
        part for part in (_text(fields.get("first_name")), _text(fields.get("last_name"))) if part
    )
    if joined:
        return joined
    return _text(fields.get("full_name")) or UNKNOWN_NAME


def parse_value(raw: Any) -> float:
    """Numeric lead value; anything unparseable becomes 0."""
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        number = float(str(raw).strip().replace(",", "")) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return number


def get_path(data: Any, path: str) -> Any:
    """Resolve a dotted path ("contact.email", "entry.0.id") or None."""
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit():
            index = int(key)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}
