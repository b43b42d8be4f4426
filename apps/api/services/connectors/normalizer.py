"""Per-platform mapping of profile payloads onto one canonical shape."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from services.connectors.types import NormalizationNotImplementedError, NormalizedProfile


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _normalize_meta(data: Dict[str, Any]) -> NormalizedProfile:
    name = _as_text(data.get("name")) or ""
    picture = _as_dict(_as_dict(data.get("picture")).get("data"))
    return NormalizedProfile(
        platform_user_id=_as_text(data.get("id")) or "",
        username=name,
        display_name=name,
        avatar_url=_as_text(picture.get("url")),
        profile_url=f"https://instagram.com/{quote(name)}" if name else None,
    )


def _normalize_tiktok(data: Dict[str, Any]) -> NormalizedProfile:
    user = _as_dict(_as_dict(data.get("data")).get("user")) or data
    display_name = _as_text(user.get("display_name")) or ""
    return NormalizedProfile(
        platform_user_id=_as_text(user.get("open_id")) or "",
        username=display_name,
        display_name=display_name,
        avatar_url=_as_text(user.get("avatar_url")),
        profile_url=f"https://tiktok.com/@{quote(display_name)}" if display_name else None,
        followers=_as_int(user.get("follower_count")),
        following=_as_int(user.get("following_count")),
    )


def _normalize_twitter(data: Dict[str, Any]) -> NormalizedProfile:
    user = _as_dict(data.get("data")) or data
    metrics = _as_dict(user.get("public_metrics"))
    username = _as_text(user.get("username")) or ""
    return NormalizedProfile(
        platform_user_id=_as_text(user.get("id")) or "",
        username=username,
        display_name=_as_text(user.get("name")) or username,
        avatar_url=_as_text(user.get("profile_image_url")),
        profile_url=f"https://x.com/{quote(username)}" if username else None,
        followers=_as_int(metrics.get("followers_count")),
        following=_as_int(metrics.get("following_count")),
        bio=_as_text(user.get("description")),
    )


def _normalize_linkedin(data: Dict[str, Any]) -> NormalizedProfile:
    subject = _as_text(data.get("sub")) or ""
    name = _as_text(data.get("name")) or ""
    return NormalizedProfile(
        platform_user_id=subject,
        username=_as_text(data.get("email")) or name,
        display_name=name,
        avatar_url=_as_text(data.get("picture")),
        profile_url=f"https://linkedin.com/in/{quote(subject)}" if subject else None,
    )


_NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], NormalizedProfile]] = {
    "meta": _normalize_meta,
    "tiktok": _normalize_tiktok,
    "twitter": _normalize_twitter,
    "linkedin": _normalize_linkedin,
}


def normalize_profile(platform: str, payload: Dict[str, Any]) -> NormalizedProfile:
    """Convert a provider's raw profile JSON into a NormalizedProfile."""
    normalizer = _NORMALIZERS.get(platform)
    if normalizer is None:
        raise NormalizationNotImplementedError(platform)
    return normalizer(_as_dict(payload))
