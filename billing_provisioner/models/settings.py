"""Service settings model.

Built once per process by `billing_provisioner.config` from the YAML file and
environment, then passed explicitly to the workflow.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BillingSettings(BaseModel):
    """Immutable settings for the provisioning workflow.

    Credentials are optional at load time: a deployment missing them still
    starts, and each request reports the misconfiguration with a 500.
    """

    model_config = ConfigDict(frozen=True)

    # Identity and billing store (Supabase)
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    anon_key: Optional[str] = Field(None, description="Caller-level API key")
    service_role_key: Optional[str] = Field(None, description="Privileged API key for the billing table")
    billing_table: str = Field(default="user_billing", description="Billing table name")
    billing_store_backend: Literal["supabase", "memory"] = Field(
        default="supabase", description="Where billing records live"
    )

    # Payment processor (Razorpay)
    razorpay_key_id: Optional[str] = Field(None, description="Razorpay key id")
    razorpay_key_secret: Optional[str] = Field(None, description="Razorpay key secret")
    razorpay_plan_id: Optional[str] = Field(None, description="Plan every new subscription uses")
    razorpay_api_base: str = Field(default="https://api.razorpay.com", description="Razorpay API origin")
    subscription_total_count: int = Field(default=12, gt=0, description="Billing cycles per subscription")

    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for outbound HTTP calls")

    @field_validator("supabase_url", "razorpay_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else value

    @field_validator(
        "supabase_url",
        "anon_key",
        "service_role_key",
        "razorpay_key_id",
        "razorpay_key_secret",
        "razorpay_plan_id",
        mode="before",
    )
    @classmethod
    def _blank_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def identity_configured(self) -> bool:
        """Identity and store settings are present."""
        if self.billing_store_backend == "memory":
            return bool(self.supabase_url and self.anon_key)
        return bool(self.supabase_url and self.anon_key and self.service_role_key)

    @property
    def processor_configured(self) -> bool:
        """Razorpay credentials and plan are present."""
        return bool(self.razorpay_key_id and self.razorpay_key_secret and self.razorpay_plan_id)
