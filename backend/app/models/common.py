"""Common types and enums shared across all models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Membership role within a tenant."""

    owner = "owner"
    admin = "admin"
    member = "member"
    viewer = "viewer"


class MembershipStatus(str, Enum):
    """Membership status."""

    active = "active"
    inactive = "inactive"
    pending = "pending"


class TenantStatus(str, Enum):
    """Tenant lifecycle status."""

    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class SubscriptionTier(str, Enum):
    """Tenant billing tier."""

    free = "free"
    basic = "basic"
    premium = "premium"
    enterprise = "enterprise"


class InvitationStatus(str, Enum):
    """Invitation lifecycle status."""

    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


class CommType(str, Enum):
    """Kind of communication channel."""

    email = "email"
    phone = "phone"
    linkedin = "linkedin"
    slack = "slack"
    whatsapp = "whatsapp"
    other = "other"


class IntegrationProvider(str, Enum):
    """Third-party provider a tenant can connect."""

    google = "google"
    outlook = "outlook"
    slack = "slack"
    quickbooks = "quickbooks"
    twilio = "twilio"
    recall_ai = "recall_ai"
    whatsapp = "whatsapp"


class IntegrationMethod(str, Enum):
    """How a provider connection is established."""

    pipedream_connect = "pipedream_connect"
    native_oauth = "native_oauth"
    api_key = "api_key"


class ConnectionStatus(str, Enum):
    """Integration connection health."""

    active = "active"
    error = "error"
    expired = "expired"
    disconnected = "disconnected"


class CamelModel(BaseModel):
    """Base for public v1 payloads, exchanged in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
