"""Enum definitions for application constants."""

from enum import Enum


class MembershipStatus(str, Enum):
    """
    Workspace membership lifecycle.

    Only ACTIVE members pass authorization. Removal is a transition to
    INACTIVE; membership rows are never hard-deleted.
    """
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class LeadStatus(str, Enum):
    """Sales pipeline stage of a lead."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid lead status."""
        return value in cls._value2member_map_


class ActivityType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    ROLE_CHANGED = "role_changed"
    NOTE_ADDED = "note_added"
    EMAIL_SENT = "email_sent"
    CALL_MADE = "call_made"
    MEETING_SCHEDULED = "meeting_scheduled"


class EntityType(str, Enum):
    """Entity types an activity can refer to."""
    LEAD = "lead"
    USER = "user"
    WORKSPACE = "workspace"
    ROLE = "role"
    MEMBER = "member"
    INVITATION = "invitation"
    WEBHOOK = "webhook"
    SUBSCRIPTION = "subscription"


class WebhookType(str, Enum):
    """Inbound webhook payload shapes with a dedicated transformer."""
    CUSTOM = "custom"
    FACEBOOK_LEADS = "facebook_leads"
    GOOGLE_FORMS = "google_forms"
    ZAPIER = "zapier"
    MAILCHIMP = "mailchimp"
    HUBSPOT = "hubspot"
    SALESFORCE = "salesforce"


class WebhookEventType(str, Enum):
    LEAD_CREATED = "lead.created"
    LEAD_UPDATED = "lead.updated"


# Defaults
DEFAULT_LEAD_STATUS = LeadStatus.NEW
DEFAULT_LEAD_SOURCE = "webhook"
DEFAULT_WEBHOOK_EVENTS = [WebhookEventType.LEAD_CREATED.value, WebhookEventType.LEAD_UPDATED.value]
