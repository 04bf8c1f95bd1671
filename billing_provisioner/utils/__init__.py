"""Utility functions and helpers."""

from billing_provisioner.utils.bearer_token import (
    decode_token_claims,
    describe_missing_subject,
    extract_bearer_token,
)

__all__ = [
    "extract_bearer_token",
    "decode_token_claims",
    "describe_missing_subject",
]
