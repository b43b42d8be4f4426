"""
OAuth state token helpers.

The state token is self-describing (user, platform, issue time, nonce) so no
server-side storage is needed between ``init`` and ``callback``. Freshness is
enforced by timestamp; single-use is optional and delegated to a nonce store.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import math
import time
import uuid
from typing import Dict, Optional, Protocol

import redis.asyncio as redis

from config import settings
from services.connectors.types import InvalidStateError, OAuthState

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 300


def _now_ms() -> int:
    return int(time.time() * 1000)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64_decode(data: str) -> bytes:
    # Accept both URL-safe and standard alphabets, padded or not.
    normalized = data.strip().replace("+", "-").replace("/", "_").rstrip("=")
    padding = "=" * (-len(normalized) % 4)
    return base64.urlsafe_b64decode(f"{normalized}{padding}")


def encode_state(
    user_id: str,
    platform: str,
    *,
    issued_at_ms: Optional[int] = None,
    nonce: Optional[str] = None,
) -> str:
    """Serialize a state token to an opaque URL-safe string."""
    payload = {
        "userId": user_id,
        "platform": platform,
        "timestamp": _now_ms() if issued_at_ms is None else int(issued_at_ms),
        "nonce": nonce or str(uuid.uuid4()),
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return _b64url_encode(raw)


def decode_state(
    token: str,
    *,
    now_ms: Optional[int] = None,
    ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
) -> OAuthState:
    """Decode a state token and enforce its freshness window."""
    if not token or not isinstance(token, str):
        raise InvalidStateError()
    try:
        payload = json.loads(_b64_decode(token))
    except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
        raise InvalidStateError() from exc
    if not isinstance(payload, dict):
        raise InvalidStateError()

    user_id = payload.get("userId")
    platform = payload.get("platform")
    timestamp = payload.get("timestamp")
    nonce = payload.get("nonce")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidStateError()
    if not isinstance(platform, str) or not platform:
        raise InvalidStateError()
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise InvalidStateError()
    if not math.isfinite(timestamp):
        raise InvalidStateError()

    current = _now_ms() if now_ms is None else int(now_ms)
    if current - int(timestamp) > ttl_seconds * 1000:
        raise InvalidStateError()

    return OAuthState(
        user_id=user_id,
        platform=platform,
        issued_at_ms=int(timestamp),
        nonce=str(nonce or ""),
    )


class StateNonceStore(Protocol):
    async def consume(self, nonce: str, ttl_seconds: int) -> bool:
        """Return True the first time a nonce is seen, False on replay."""
        ...


class NullNonceStore:
    """Accepts every nonce; state tokens are reusable within their window."""

    async def consume(self, nonce: str, ttl_seconds: int) -> bool:
        return True


class InMemoryNonceStore:
    """Process-local single-use store."""

    def __init__(self) -> None:
        self._seen: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def consume(self, nonce: str, ttl_seconds: int) -> bool:
        now = time.time()
        async with self._lock:
            expired = [key for key, expires_at in self._seen.items() if expires_at <= now]
            for key in expired:
                self._seen.pop(key, None)
            if nonce in self._seen:
                return False
            self._seen[nonce] = now + ttl_seconds
            return True


class RedisNonceStore:
    """Single-use nonce store backed by Redis SET NX, with a local fallback."""

    def __init__(self, redis_url: str, *, prefix: str = "sc:oauth_state") -> None:
        self.redis_url = redis_url
        self.prefix = prefix
        self._fallback = InMemoryNonceStore()

    async def consume(self, nonce: str, ttl_seconds: int) -> bool:
        key = f"{self.prefix}:{nonce}"
        try:
            redis_client = redis.from_url(self.redis_url, decode_responses=True)
            try:
                stored = await redis_client.set(key, "1", nx=True, ex=max(int(ttl_seconds), 1))
            finally:
                await redis_client.aclose()
            return bool(stored)
        except Exception as exc:
            logger.warning("State nonce store unavailable, using local fallback: %s", exc)
            return await self._fallback.consume(key, ttl_seconds)


_null_store = NullNonceStore()
_redis_store: Optional[RedisNonceStore] = None


def get_state_nonce_store() -> StateNonceStore:
    """FastAPI dependency selecting the replay-protection strategy."""
    global _redis_store
    if not settings.OAUTH_STATE_SINGLE_USE:
        return _null_store
    if _redis_store is None:
        _redis_store = RedisNonceStore(settings.REDIS_URL)
    return _redis_store


async def verify_state(
    token: str,
    *,
    nonce_store: StateNonceStore,
    ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
    now_ms: Optional[int] = None,
) -> OAuthState:
    """Decode a state token and, when the store demands it, burn its nonce."""
    state = decode_state(token, now_ms=now_ms, ttl_seconds=ttl_seconds)
    if not await nonce_store.consume(state.nonce or token, ttl_seconds):
        logger.warning("Rejected replayed OAuth state for user %s platform %s", state.user_id, state.platform)
        raise InvalidStateError()
    return state
