"""Static OAuth endpoint/scope table for supported platforms."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from services.connectors.types import ProviderConfig, UnsupportedProviderError


PROVIDER_CONFIGS: Mapping[str, ProviderConfig] = MappingProxyType(
    {
        "meta": ProviderConfig(
            platform="meta",
            authorization_endpoint="https://www.facebook.com/v18.0/dialog/oauth",
            token_endpoint="https://graph.facebook.com/v18.0/oauth/access_token",
            profile_endpoint="https://graph.facebook.com/me",
            scopes=(
                "instagram_basic",
                "instagram_manage_insights",
                "pages_show_list",
                "pages_read_engagement",
            ),
        ),
        "tiktok": ProviderConfig(
            platform="tiktok",
            authorization_endpoint="https://www.tiktok.com/v2/auth/authorize/",
            token_endpoint="https://open.tiktokapis.com/v2/oauth/token/",
            profile_endpoint="https://open.tiktokapis.com/v2/user/info/",
            scopes=("user.info.basic", "user.info.profile", "user.info.stats", "video.list"),
        ),
        "twitter": ProviderConfig(
            platform="twitter",
            authorization_endpoint="https://twitter.com/i/oauth2/authorize",
            token_endpoint="https://api.twitter.com/2/oauth2/token",
            profile_endpoint="https://api.twitter.com/2/users/me",
            scopes=("tweet.read", "users.read", "follows.read"),
        ),
        "linkedin": ProviderConfig(
            platform="linkedin",
            authorization_endpoint="https://www.linkedin.com/oauth/v2/authorization",
            token_endpoint="https://www.linkedin.com/oauth/v2/accessToken",
            profile_endpoint="https://api.linkedin.com/v2/userinfo",
            scopes=("openid", "profile", "email"),
        ),
        # Registered so the UI can list it; no provider implementation yet.
        "youtube": ProviderConfig(
            platform="youtube",
            authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
            token_endpoint="https://oauth2.googleapis.com/token",
            profile_endpoint="https://www.googleapis.com/youtube/v3/channels",
            scopes=("https://www.googleapis.com/auth/youtube.readonly",),
        ),
    }
)


def get_provider_config(platform: str) -> ProviderConfig:
    """Look up a provider's endpoints by key."""
    config = PROVIDER_CONFIGS.get((platform or "").strip().lower())
    if config is None:
        raise UnsupportedProviderError(platform)
    return config
