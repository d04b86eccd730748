"""Transformers for third-party lead sources.

Each maps the provider's payload shape onto the shared field names and
leaves the name/value/source policy to LeadDraft.from_fields.
"""

from __future__ import annotations

from typing import Any

from crm.db.enums import WebhookType
from crm.services.webhooks.base import LeadDraft, as_dict, get_path


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class FacebookLeadsTransformer:
    """Facebook Lead Ads: either the raw Graph change or a flattened lead."""

    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        change = as_dict(get_path(payload, "entry.0.changes.0.value"))
        lead = change if change.get("leadgen_id") else payload
        return LeadDraft.from_fields({
            "first_name": lead.get("first_name"),
            "last_name": lead.get("last_name"),
            "full_name": lead.get("full_name"),
            "email": lead.get("email"),
            "phone": lead.get("phone_number") or lead.get("phone"),
            "company": lead.get("company_name"),
            "source": WebhookType.FACEBOOK_LEADS.value,
            "custom_fields": _compact({
                "facebook_lead_id": lead.get("leadgen_id") or lead.get("id"),
                "ad_id": lead.get("ad_id"),
                "form_id": lead.get("form_id"),
                **as_dict(lead.get("custom_fields")),
            }),
        })


class GoogleFormsTransformer:
    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        return LeadDraft.from_fields({
            "name": payload.get("name"),
            "first_name": payload.get("first_name"),
            "last_name": payload.get("last_name"),
            "email": payload.get("email"),
            "phone": payload.get("phone"),
            "company": payload.get("company"),
            "source": WebhookType.GOOGLE_FORMS.value,
            "custom_fields": as_dict(payload.get("custom_fields")),
        })


class ZapierTransformer:
    """Zapier zaps usually post clean, already-mapped fields."""

    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        return LeadDraft.from_fields({
            "name": payload.get("name"),
            "full_name": payload.get("full_name"),
            "email": payload.get("email"),
            "phone": payload.get("phone"),
            "company": payload.get("company"),
            "value": payload.get("value"),
            "source": WebhookType.ZAPIER.value,
            "custom_fields": as_dict(payload.get("custom_fields")),
        })


class MailchimpTransformer:
    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        merge_fields = as_dict(payload.get("merge_fields"))
        return LeadDraft.from_fields({
            "first_name": merge_fields.get("FNAME"),
            "last_name": merge_fields.get("LNAME"),
            "email": payload.get("email_address"),
            "phone": merge_fields.get("PHONE"),
            "company": merge_fields.get("COMPANY"),
            "source": WebhookType.MAILCHIMP.value,
            "custom_fields": _compact({
                "mailchimp_id": payload.get("id"),
                "status": payload.get("status"),
                **merge_fields,
            }),
        })


class HubspotTransformer:
    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        properties = as_dict(payload.get("properties"))
        return LeadDraft.from_fields({
            "first_name": properties.get("firstname"),
            "last_name": properties.get("lastname"),
            "email": properties.get("email"),
            "phone": properties.get("phone"),
            "company": properties.get("company"),
            "source": WebhookType.HUBSPOT.value,
            "custom_fields": _compact({"hubspot_id": payload.get("id"), **properties}),
        })


class SalesforceTransformer:
    def transform(self, payload: dict[str, Any]) -> LeadDraft:
        return LeadDraft.from_fields({
            "first_name": payload.get("FirstName"),
            "last_name": payload.get("LastName"),
            "email": payload.get("Email"),
            "phone": payload.get("Phone"),
            "company": payload.get("Company"),
            "source": WebhookType.SALESFORCE.value,
            "custom_fields": _compact({
                "salesforce_id": payload.get("Id"),
                "lead_source": payload.get("LeadSource"),
                **payload,
            }),
        })
