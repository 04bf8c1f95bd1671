"""Bearer credential helpers.

The payload decode here is structural only (no signature, expiry or audience
checks). It exists to tell a misused anon key apart from a bad session before
the identity provider is asked; authorization decisions never rely on it.
"""

from typing import Optional

import jwt

from billing_provisioner.models import TokenClaims

BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the credential from an Authorization header value.

    The scheme match is case-insensitive. Returns an empty string when the
    header is absent or uses another scheme.

    Examples:
        >>> extract_bearer_token("Bearer abc.def.ghi")
        'abc.def.ghi'
        >>> extract_bearer_token("Basic dXNlcjpwYXNz")
        ''
    """
    if not authorization:
        return ""
    if not authorization.lower().startswith(BEARER_PREFIX):
        return ""
    return authorization[len(BEARER_PREFIX):].strip()


def decode_token_claims(token: str) -> Optional[TokenClaims]:
    """Decode a JWT payload without verifying it.

    Args:
        token: Compact-serialized JWT

    Returns:
        TokenClaims, or None if the token is not a decodable JWT with an object payload
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None

    if not isinstance(payload, dict):
        return None

    claims = dict(payload)
    for key in ("sub", "role", "email"):
        if claims.get(key) is not None:
            claims[key] = str(claims[key])
    if not isinstance(claims.get("exp"), int):
        claims["exp"] = None
    return TokenClaims.model_validate(claims)


def describe_missing_subject(claims: Optional[TokenClaims]) -> str:
    """Error message for a token that carries no subject claim."""
    role = claims.role if claims is not None and claims.role else ""
    return (
        f"Invalid authorization token: missing sub claim (role={role}). "
        "Please login again and ensure Authorization uses the user's access_token, "
        "not the anon key."
    )
