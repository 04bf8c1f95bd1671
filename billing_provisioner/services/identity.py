"""Identity provider - resolves a bearer token to the signed-in user.

Token verification is delegated entirely to Supabase Auth (GET /auth/v1/user);
nothing in this service checks signatures itself.
"""

from typing import Optional

import httpx
from pydantic import ValidationError

from billing_provisioner.logging_config import get_logger
from billing_provisioner.models import AuthenticatedUser

logger = get_logger(__name__)


class IdentityError(Exception):
    """Raised when a token does not resolve to a user."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class IdentityProvider:
    """Interface for token verification."""

    def get_user(self, token: str) -> AuthenticatedUser:
        """Verify the token and return the user it belongs to.

        Raises:
            IdentityError: If the token is invalid, expired or revoked
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any held connections."""


def _auth_error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return None


class SupabaseIdentityClient(IdentityProvider):
    """Supabase Auth client authenticated with the caller-level (anon) key."""

    def __init__(
        self,
        supabase_url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=f"{supabase_url.rstrip('/')}/auth/v1",
            headers={"apikey": anon_key},
            timeout=timeout,
            transport=transport,
        )

    def get_user(self, token: str) -> AuthenticatedUser:
        try:
            response = self._client.get("/user", headers={"Authorization": f"Bearer {token}"})
        except httpx.TimeoutException:
            raise IdentityError("Identity service timed out")
        except httpx.RequestError as exc:
            logger.error("identity_service_unreachable", error=str(exc))
            raise IdentityError("Identity service is unreachable")

        if response.is_error:
            raise IdentityError(
                _auth_error_message(response) or "Invalid session",
                status_code=response.status_code,
            )

        try:
            body = response.json()
            user = AuthenticatedUser.model_validate(
                {"id": body.get("id"), "email": body.get("email") or ""}
            )
        except (ValueError, AttributeError, ValidationError):
            raise IdentityError("Invalid session", status_code=response.status_code)

        return user

    def close(self) -> None:
        self._client.close()
