"""Caller identity models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenClaims(BaseModel):
    """Unverified JWT payload, used only for diagnostics before session verification."""

    model_config = ConfigDict(extra="allow")

    sub: Optional[str] = Field(None, description="Subject (user id)")
    role: Optional[str] = Field(None, description="Role claim, e.g. 'authenticated' or 'anon'")
    email: Optional[str] = None
    exp: Optional[int] = None

    @property
    def has_subject(self) -> bool:
        return bool(self.sub)


class AuthenticatedUser(BaseModel):
    """User resolved by the identity provider from a bearer token."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Canonical user id")
    email: str = Field(default="", description="Email address, empty if the account has none")

    @property
    def display_name(self) -> str:
        """Name sent to the payment processor: email, else user id."""
        return self.email or self.id
