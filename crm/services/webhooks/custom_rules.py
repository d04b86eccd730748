"""Per-endpoint mapping rules: target field -> dotted source path.

Rules are a JSON object. A value is either a path string or an object
``{"path": "...", "transform": "uppercase" | "lowercase" | "trim"}``::

    {
        "name": "contact.full_name",
        "email": {"path": "contact.email", "transform": "lowercase"}
    }
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from crm.services.webhooks.base import LeadDraft, TransformationError, get_path

TRANSFORMS: dict[str, Callable[[str], str]] = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "trim": str.strip,
}


def validate_rules(rules: Any) -> dict[str, Any]:
    """Raise TransformationError unless ``rules`` is a well-formed rule set."""
    if not isinstance(rules, Mapping):
        raise TransformationError("Transformation rules must be an object")
    for target, rule in rules.items():
        if isinstance(rule, str):
            continue
        if not isinstance(rule, Mapping) or not isinstance(rule.get("path"), str):
            raise TransformationError(f"Rule for '{target}' must be a path or an object with a path")
        transform = rule.get("transform")
        if transform is not None and transform not in TRANSFORMS:
            raise TransformationError(f"Unknown transform '{transform}' for '{target}'")
    return dict(rules)


class CustomRulesTransformer:
    def __init__(self, rules: Mapping[str, Any]):
        self.rules = validate_rules(rules)

    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        fields: dict[str, Any] = {}
        for target, rule in self.rules.items():
            if isinstance(rule, str):
                fields[target] = get_path(payload, rule)
                continue
            value = get_path(payload, rule["path"])
            transform = rule.get("transform")
            if transform and value is not None:
                value = TRANSFORMS[transform](str(value))
            fields[target] = value
        return LeadDraft.from_fields(fields)
