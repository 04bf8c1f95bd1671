"""Pydantic models for settings, billing state, processor entities and API bodies."""

# Settings
from .settings import BillingSettings

# Billing state
from .billing import (
    BillingRecord,
    SubscriptionStatus,
    is_active_status,
)

# Identity
from .identity import (
    AuthenticatedUser,
    TokenClaims,
)

# Payment processor entities
from .processor import (
    ProcessorCustomer,
    ProcessorPlan,
    ProcessorSubscription,
)

# API bodies
from .api_response import (
    CreateSubscriptionResponse,
    ErrorResponse,
)

__all__ = [
    # Settings
    "BillingSettings",
    # Billing state
    "BillingRecord",
    "SubscriptionStatus",
    "is_active_status",
    # Identity
    "AuthenticatedUser",
    "TokenClaims",
    # Processor
    "ProcessorCustomer",
    "ProcessorPlan",
    "ProcessorSubscription",
    # API bodies
    "CreateSubscriptionResponse",
    "ErrorResponse",
]
