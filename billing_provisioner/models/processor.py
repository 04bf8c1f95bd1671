"""Razorpay entities as returned by the REST API.

Only the fields the provisioning workflow reads are declared; everything else
the API returns is kept as extra attributes.
"""

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProcessorCustomer(BaseModel):
    """Response of POST /v1/customers and GET /v1/customers/{id}."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Customer id (cust_...)")
    name: Optional[str] = None
    email: Optional[str] = None
    notes: Union[dict, list, None] = None


class ProcessorPlan(BaseModel):
    """Response of GET /v1/plans/{id}."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Plan id (plan_...)")
    period: Optional[str] = None
    interval: Optional[int] = None


class ProcessorSubscription(BaseModel):
    """Response of POST /v1/subscriptions."""

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "id": "sub_NXo8aBcDeFgHiJ",
                "entity": "subscription",
                "plan_id": "plan_basic",
                "customer_id": "cust_NXo7qQ1m2x3y4z",
                "status": "created",
                "current_end": None,
                "total_count": 12,
                "short_url": "https://rzp.io/i/abc123",
            }
        },
    )

    id: str = Field(..., description="Subscription id (sub_...)")
    status: Optional[str] = Field(None, description="Processor status string")
    current_end: Optional[Union[int, float, str]] = Field(
        None, description="End of the current period, epoch seconds"
    )
    short_url: Optional[str] = Field(None, description="Hosted checkout link")
    plan_id: Optional[str] = None
    customer_id: Optional[str] = None

    def current_period_end(self) -> Optional[datetime]:
        """Convert `current_end` to an aware UTC datetime.

        Only numeric values count; Razorpay sends null before the first charge.
        """
        if isinstance(self.current_end, bool) or not isinstance(self.current_end, (int, float)):
            return None
        return datetime.fromtimestamp(self.current_end, tz=timezone.utc)
