"""Billing record and subscription status models.

One billing record exists per user, keyed by user_id, in the user_billing table.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Subscription statuses reported by Razorpay."""

    CREATED = "created"  # Created, awaiting the first authorisation
    AUTHENTICATED = "authenticated"  # Mandate authorised, first charge pending
    ACTIVE = "active"  # Charged and running
    PENDING = "pending"  # Charge failed, processor is retrying
    HALTED = "halted"  # Retries exhausted
    CANCELLED = "cancelled"
    COMPLETED = "completed"  # All billing cycles charged
    EXPIRED = "expired"  # Never authorised before the start deadline
    PAUSED = "paused"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SubscriptionStatus"]:
        """Map a raw status string to a known status, or None if unrecognized.

        Matching is exact: "ACTIVE" or " active" are unrecognized.
        """
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_active(self) -> bool:
        return self is SubscriptionStatus.ACTIVE


def is_active_status(value: Optional[str]) -> bool:
    """Whether a stored status string denotes an active subscription."""
    status = SubscriptionStatus.parse(value)
    return status is not None and status.is_active


class BillingRecord(BaseModel):
    """A user's billing state as persisted in the billing table.

    The raw status string is kept verbatim so statuses the processor adds later
    round-trip through storage unchanged; use `status` / `is_active` for
    decisions.
    """

    user_id: str = Field(..., min_length=1, description="Internal user identifier (table key)")
    razorpay_customer_id: Optional[str] = Field(None, description="Processor customer id, set once")
    razorpay_subscription_id: Optional[str] = Field(None, description="Processor subscription id")
    subscription_status: Optional[str] = Field(None, description="Processor subscription status")
    trial_ends_at: Optional[datetime] = Field(None, description="End of the trial window")
    current_period_end: Optional[datetime] = Field(None, description="End of the current billing period")
    updated_at: Optional[datetime] = Field(None, description="Last write time")

    @property
    def status(self) -> Optional[SubscriptionStatus]:
        return SubscriptionStatus.parse(self.subscription_status)

    @property
    def is_active(self) -> bool:
        return is_active_status(self.subscription_status)

    def to_row(self) -> dict:
        """Serialize to a JSON-compatible table row (every column present)."""
        return self.model_dump(mode="json")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "8f14e45f-ceea-467f-a0e6-4a2b3c9d1e00",
                "razorpay_customer_id": "cust_NXo7qQ1m2x3y4z",
                "razorpay_subscription_id": "sub_NXo8aBcDeFgHiJ",
                "subscription_status": "created",
                "trial_ends_at": "2026-10-19T09:30:00Z",
                "current_period_end": None,
                "updated_at": "2026-10-19T09:30:00Z",
            }
        }
