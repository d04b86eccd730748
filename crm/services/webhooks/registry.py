"""Transformer registry keyed by webhook type."""

from __future__ import annotations

from typing import Any

from crm.db.enums import WebhookType
from crm.services.webhooks.base import PayloadTransformer
from crm.services.webhooks.custom_rules import CustomRulesTransformer
from crm.services.webhooks.generic import GenericTransformer
from crm.services.webhooks.providers import (
    FacebookLeadsTransformer,
    GoogleFormsTransformer,
    HubspotTransformer,
    MailchimpTransformer,
    SalesforceTransformer,
    ZapierTransformer,
)

_TRANSFORMERS: dict[str, PayloadTransformer] = {
    WebhookType.CUSTOM.value: GenericTransformer(),
    WebhookType.FACEBOOK_LEADS.value: FacebookLeadsTransformer(),
    WebhookType.GOOGLE_FORMS.value: GoogleFormsTransformer(),
    WebhookType.ZAPIER.value: ZapierTransformer(),
    WebhookType.MAILCHIMP.value: MailchimpTransformer(),
    WebhookType.HUBSPOT.value: HubspotTransformer(),
    WebhookType.SALESFORCE.value: SalesforceTransformer(),
}


def get_transformer(webhook_type: str) -> PayloadTransformer:
    transformer = _TRANSFORMERS.get(webhook_type)
    if not transformer:
        raise KeyError(f"Unknown webhook type: {webhook_type}")
    return transformer


def resolve_transformer(
    webhook_type: str,
    transformation_rules: dict[str, Any] | None = None,
) -> PayloadTransformer:
    """Custom rules win over the type's built-in transformer when present."""
    if transformation_rules:
        return CustomRulesTransformer(transformation_rules)
    return get_transformer(webhook_type)
