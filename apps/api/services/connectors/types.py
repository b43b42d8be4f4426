"""Connector provider contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple


PlatformKey = Literal["meta", "tiktok", "twitter", "linkedin", "youtube"]


class ConnectorError(Exception):
    """Base error carrying an HTTP status and a client-safe message."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InternalServerError(ConnectorError):
    """Unexpected failure; the client only sees a generic message."""


class UnauthorizedError(ConnectorError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidActionError(ConnectorError):
    status_code = 400
    default_message = "Invalid action"


class MissingFieldError(ConnectorError):
    status_code = 400

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing required field: {field}")


class UnsupportedProviderError(ConnectorError):
    status_code = 400

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class ProviderNotImplementedError(ConnectorError):
    status_code = 501
    default_message = "Platform not implemented"


class InvalidStateError(ConnectorError):
    status_code = 400
    default_message = "Invalid state token"


class TokenExchangeFailedError(ConnectorError):
    """Provider rejected an authorization-code exchange."""

    def __init__(self, upstream_status: int) -> None:
        self.upstream_status = upstream_status
        super().__init__(f"Token exchange failed: {upstream_status}")


class TokenRefreshFailedError(ConnectorError):
    """Provider rejected a refresh grant."""

    def __init__(self, upstream_status: int) -> None:
        self.upstream_status = upstream_status
        super().__init__(f"Token refresh failed: {upstream_status}")


class ProfileFetchFailedError(ConnectorError):
    def __init__(self, upstream_status: int) -> None:
        self.upstream_status = upstream_status
        super().__init__(f"Profile fetch failed: {upstream_status}")


class ProviderUnavailableError(ConnectorError):
    """Transport-level failure talking to a provider (timeout, DNS, reset)."""

    def __init__(self, platform: str, operation: str) -> None:
        self.platform = platform
        self.operation = operation
        super().__init__(f"{platform} {operation} request failed: provider unavailable")


class NormalizationNotImplementedError(ConnectorError):
    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"Profile normalization not implemented for {platform}")


class AccountNotFoundError(ConnectorError):
    status_code = 404
    default_message = "Account not found"


class AccountNotConnectedError(ConnectorError):
    status_code = 400
    default_message = "Account is not connected"


class NoRefreshTokenError(ConnectorError):
    status_code = 400
    default_message = "No refresh token available"


@dataclass(frozen=True)
class ProviderConfig:
    platform: PlatformKey
    authorization_endpoint: str
    token_endpoint: str
    profile_endpoint: str
    scopes: Tuple[str, ...]


@dataclass(frozen=True)
class OAuthState:
    user_id: str
    platform: str
    issued_at_ms: int
    nonce: str


@dataclass(frozen=True)
class AuthorizationRequest:
    authorization_url: str
    state: str
    code_verifier: Optional[str] = None


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None


@dataclass(frozen=True)
class NormalizedProfile:
    platform_user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    profile_url: Optional[str] = None
    followers: Optional[int] = None
    following: Optional[int] = None
    engagement: Optional[float] = None
    bio: Optional[str] = None
