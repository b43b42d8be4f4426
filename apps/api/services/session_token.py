"""Bearer session tokens that scope connector actions to one creator."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "social_connect_session"
SESSION_ISSUER = "social-connect-api"


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    email: Optional[str]
    expires_at: datetime


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """Issue a signed session token for a user id."""
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(hours=max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1))
    expires_at = int((issued_at + lifetime).timestamp())

    claims: Dict[str, Any] = {
        "iss": SESSION_ISSUER,
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": expires_at,
    }
    if email:
        claims["email"] = email
    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": expires_at,
    }


def decode_session_token(token: str) -> SessionClaims:
    """
    Verify signature, expiry and issuer and return the session's claims.

    Raises:
        ValueError: for tokens that are forged, expired, issued elsewhere,
            of another token type or without a subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=SESSION_ISSUER,
        )
    except JWTError as exc:
        raise ValueError(f"Session token rejected: {exc}") from exc

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Not a social connect session token.")
    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise ValueError("Session token has no subject.")

    return SessionClaims(
        user_id=user_id,
        email=str(payload.get("email") or "") or None,
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
    )
