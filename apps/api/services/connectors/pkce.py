"""PKCE (RFC 7636) verifier/challenge helpers."""

import base64
import hashlib
import secrets


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    """Random 43-character verifier from 32 bytes of entropy."""
    return _b64url(secrets.token_bytes(32))


def derive_code_challenge(verifier: str) -> str:
    """S256 challenge for a verifier."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
