"""OAuth provider implementations, one per supported platform."""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple, Type
from urllib.parse import quote, urlencode

import httpx

from config import ClientCredentials, ProviderCredentials, settings
from services.connectors.http import get_json, post_form
from services.connectors.normalizer import normalize_profile
from services.connectors.pkce import derive_code_challenge, generate_code_verifier
from services.connectors.registry import get_provider_config
from services.connectors.types import (
    AuthorizationRequest,
    NormalizedProfile,
    ProfileFetchFailedError,
    ProviderConfig,
    ProviderNotImplementedError,
    TokenExchangeFailedError,
    TokenGrant,
    TokenRefreshFailedError,
)

logger = logging.getLogger(__name__)

ProfileRequest = Tuple[str, Dict[str, str], Dict[str, str]]


def _parse_token_grant(
    payload: Dict[str, Any],
    on_error: Callable[[int], Exception],
) -> TokenGrant:
    access_token = str(payload.get("access_token") or "").strip()
    if not access_token:
        raise on_error(200)
    expires_in = payload.get("expires_in")
    try:
        expires_in = int(expires_in) if expires_in is not None else None
    except (TypeError, ValueError):
        expires_in = None
    return TokenGrant(
        access_token=access_token,
        refresh_token=str(payload["refresh_token"]) if payload.get("refresh_token") else None,
        expires_in=expires_in,
        scope=str(payload["scope"]) if payload.get("scope") else None,
        token_type=str(payload["token_type"]) if payload.get("token_type") else None,
    )


class BaseConnectorProvider(ABC):
    """Capability set every platform implements: auth URL, code/refresh grants, profile."""

    platform: str
    client_id_param = "client_id"
    uses_pkce = False

    def __init__(
        self,
        *,
        config: ProviderConfig,
        credentials: ClientCredentials,
        refresh_attempts: Optional[int] = None,
        refresh_backoff_seconds: Optional[float] = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.refresh_attempts = (
            settings.PROVIDER_REFRESH_MAX_ATTEMPTS if refresh_attempts is None else refresh_attempts
        )
        self.refresh_backoff_seconds = (
            settings.PROVIDER_REFRESH_BACKOFF_SECONDS
            if refresh_backoff_seconds is None
            else refresh_backoff_seconds
        )

    def build_authorization_url(self, *, redirect_uri: str, state: str) -> AuthorizationRequest:
        params = {
            self.client_id_param: self.credentials.client_id,
            "redirect_uri": redirect_uri,
            "state": state,
            "scope": " ".join(self.config.scopes),
            "response_type": "code",
        }
        code_verifier = None
        if self.uses_pkce:
            code_verifier = generate_code_verifier()
            params["code_challenge"] = derive_code_challenge(code_verifier)
            params["code_challenge_method"] = "S256"
        url = f"{self.config.authorization_endpoint}?{urlencode(params, quote_via=quote)}"
        return AuthorizationRequest(authorization_url=url, state=state, code_verifier=code_verifier)

    def _token_headers(self) -> Dict[str, str]:
        return {}

    @abstractmethod
    def _code_grant_body(
        self,
        *,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str],
    ) -> Dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def _refresh_grant_body(self, refresh_token: str) -> Dict[str, str]:
        raise NotImplementedError

    def _profile_request(self, access_token: str) -> ProfileRequest:
        return self.config.profile_endpoint, {}, {"Authorization": f"Bearer {access_token}"}

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        *,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> TokenGrant:
        """Exchange an authorization code. Codes are single-use, so no retries."""
        payload = await post_form(
            client,
            self.config.token_endpoint,
            self._code_grant_body(code=code, redirect_uri=redirect_uri, code_verifier=code_verifier),
            platform=self.platform,
            operation="token exchange",
            headers=self._token_headers(),
            on_error=TokenExchangeFailedError,
        )
        return _parse_token_grant(payload, TokenExchangeFailedError)

    async def refresh_access_token(self, client: httpx.AsyncClient, *, refresh_token: str) -> TokenGrant:
        payload = await post_form(
            client,
            self.config.token_endpoint,
            self._refresh_grant_body(refresh_token),
            platform=self.platform,
            operation="token refresh",
            headers=self._token_headers(),
            attempts=self.refresh_attempts,
            backoff_seconds=self.refresh_backoff_seconds,
            on_error=TokenRefreshFailedError,
        )
        return _parse_token_grant(payload, TokenRefreshFailedError)

    async def fetch_profile(self, client: httpx.AsyncClient, *, access_token: str) -> NormalizedProfile:
        url, params, headers = self._profile_request(access_token)
        payload = await get_json(
            client,
            url,
            params=params,
            headers=headers,
            platform=self.platform,
            operation="profile fetch",
            on_error=ProfileFetchFailedError,
        )
        return normalize_profile(self.platform, payload)


class MetaConnectorProvider(BaseConnectorProvider):
    platform = "meta"

    def _code_grant_body(self, *, code, redirect_uri, code_verifier):
        return {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

    def _refresh_grant_body(self, refresh_token):
        # Meta has no refresh grant; long-lived tokens are re-exchanged instead.
        return {
            "grant_type": "fb_exchange_token",
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "fb_exchange_token": refresh_token,
        }

    def _profile_request(self, access_token):
        params = {"fields": "id,name,picture", "access_token": access_token}
        return self.config.profile_endpoint, params, {}


class TikTokConnectorProvider(BaseConnectorProvider):
    platform = "tiktok"
    client_id_param = "client_key"

    def _code_grant_body(self, *, code, redirect_uri, code_verifier):
        return {
            "client_key": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

    def _refresh_grant_body(self, refresh_token):
        return {
            "client_key": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }

    def _profile_request(self, access_token):
        url, _, headers = super()._profile_request(access_token)
        params = {
            "fields": "open_id,union_id,avatar_url,display_name,follower_count,following_count,likes_count",
        }
        return url, params, headers


class TwitterConnectorProvider(BaseConnectorProvider):
    platform = "twitter"
    uses_pkce = True

    def _token_headers(self):
        raw = f"{self.credentials.client_id}:{self.credentials.client_secret}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}

    def _code_grant_body(self, *, code, redirect_uri, code_verifier):
        body = {
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
            "client_id": self.credentials.client_id,
        }
        if code_verifier:
            body["code_verifier"] = code_verifier
        return body

    def _refresh_grant_body(self, refresh_token):
        return {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }

    def _profile_request(self, access_token):
        url, _, headers = super()._profile_request(access_token)
        params = {"user.fields": "id,name,username,profile_image_url,public_metrics,description"}
        return url, params, headers


class LinkedInConnectorProvider(BaseConnectorProvider):
    platform = "linkedin"

    def _code_grant_body(self, *, code, redirect_uri, code_verifier):
        return {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

    def _refresh_grant_body(self, refresh_token):
        return {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }


PROVIDER_CLASSES: Dict[str, Type[BaseConnectorProvider]] = {
    "meta": MetaConnectorProvider,
    "tiktok": TikTokConnectorProvider,
    "twitter": TwitterConnectorProvider,
    "linkedin": LinkedInConnectorProvider,
}


def get_connector_provider(platform: str, credentials: ProviderCredentials) -> BaseConnectorProvider:
    """Resolve a registered platform to its provider implementation."""
    config = get_provider_config(platform)
    provider_cls = PROVIDER_CLASSES.get(config.platform)
    if provider_cls is None:
        logger.info("Provider %s is registered but has no implementation", config.platform)
        raise ProviderNotImplementedError()
    return provider_cls(config=config, credentials=credentials.for_platform(config.platform))
