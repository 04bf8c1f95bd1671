"""JSON bodies returned by the billing endpoint.

Field names are fixed by existing web and mobile clients, including the two
spellings of the subscription id.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class CreateSubscriptionResponse(BaseModel):
    """Success body of POST /billing/create-subscription."""

    ok: bool = Field(default=True)
    keyId: str = Field(..., description="Razorpay key id for the checkout widget")
    subscriptionId: str = Field(..., description="Created subscription id")
    subscription_id: str = Field(..., description="Same as subscriptionId")
    short_url: Optional[str] = Field(None, description="Hosted checkout link")

    class Config:
        json_schema_extra = {
            "example": {
                "ok": True,
                "keyId": "rzp_test_1DP5mmOlF5G5ag",
                "subscriptionId": "sub_NXo8aBcDeFgHiJ",
                "subscription_id": "sub_NXo8aBcDeFgHiJ",
                "short_url": "https://rzp.io/i/abc123",
            }
        }


class ErrorResponse(BaseModel):
    """Error body. Only `error` is always present."""

    error: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Upstream error body or store message")
    debug: Optional[dict[str, Any]] = Field(None, description="Identifiers used in the failing call")
    plan_id: Optional[str] = Field(None, description="Plan id that failed validation")
    customer_id: Optional[str] = Field(None, description="Customer id that failed validation")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Razorpay plan_id is not valid for these keys/mode.",
                "plan_id": "plan_basic",
                "details": {
                    "status": 400,
                    "statusText": "Bad Request",
                    "body": '{"error":{"code":"BAD_REQUEST_ERROR","description":"The id provided does not exist"}}',
                },
            }
        }
