"""Models package - re-exports for convenience."""

from backend.app.models.common import (
    CamelModel,
    CommType,
    ConnectionStatus,
    IntegrationMethod,
    IntegrationProvider,
    InvitationStatus,
    MembershipStatus,
    Role,
    SubscriptionTier,
    TenantStatus,
)

__all__ = [
    "CamelModel",
    "CommType",
    "ConnectionStatus",
    "IntegrationMethod",
    "IntegrationProvider",
    "InvitationStatus",
    "MembershipStatus",
    "Role",
    "SubscriptionTier",
    "TenantStatus",
]
