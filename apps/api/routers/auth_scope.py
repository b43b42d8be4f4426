"""Authentication dependencies for API user scoping."""

from dataclasses import dataclass
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.connectors.types import UnauthorizedError
from services.session_token import decode_session_token

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


async def get_optional_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
) -> Optional[AuthContext]:
    """Resolve the session user, or None when the request carries no usable session."""
    if not credentials or credentials.scheme.lower() != "bearer":
        return None

    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        logger.info("Rejected session token: %s", exc)
        return None

    return AuthContext(user_id=claims.user_id, email=claims.email)


def require_auth(auth: Optional[AuthContext]) -> AuthContext:
    if auth is None:
        raise UnauthorizedError()
    return auth
