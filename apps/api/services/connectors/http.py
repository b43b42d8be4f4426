"""Outbound HTTP helpers for provider token and profile endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Callable, Dict, Mapping, Optional

import httpx

from config import settings
from services.connectors.types import ProviderUnavailableError

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})


def build_provider_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create the shared client with an explicit per-request deadline."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(float(settings.PROVIDER_HTTP_TIMEOUT_SECONDS)),
        transport=transport,
        headers={"Accept": "application/json"},
    )


async def get_provider_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """FastAPI dependency yielding a provider HTTP client per request."""
    async with build_provider_client() as client:
        yield client


def _body_excerpt(response: httpx.Response, limit: int = 500) -> str:
    return response.text[:limit]


async def post_form(
    client: httpx.AsyncClient,
    url: str,
    data: Mapping[str, str],
    *,
    platform: str,
    operation: str,
    headers: Optional[Dict[str, str]] = None,
    attempts: int = 1,
    backoff_seconds: float = 0.0,
    on_error: Callable[[int], Exception],
) -> Dict[str, Any]:
    """
    POST a form-encoded body and return the decoded JSON response.

    ``attempts`` > 1 retries transport errors and 5xx answers with exponential
    backoff; only idempotent grants should ask for that. Non-2xx answers are
    logged with their body and converted with ``on_error(status)``.
    """
    request_headers = {"Content-Type": FORM_CONTENT_TYPE}
    if headers:
        request_headers.update(headers)

    max_attempts = max(int(attempts), 1)
    response: Optional[httpx.Response] = None
    for attempt in range(1, max_attempts + 1):
        try:
            response = await client.post(url, data=dict(data), headers=request_headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "%s %s transport error (attempt %s/%s): %s",
                platform,
                operation,
                attempt,
                max_attempts,
                exc,
            )
            if attempt >= max_attempts:
                raise ProviderUnavailableError(platform, operation) from exc
            await asyncio.sleep(backoff_seconds * (2 ** (attempt - 1)))
            continue

        if response.status_code in RETRYABLE_STATUS_CODES and attempt < max_attempts:
            logger.warning(
                "%s %s upstream %s (attempt %s/%s), retrying",
                platform,
                operation,
                response.status_code,
                attempt,
                max_attempts,
            )
            await asyncio.sleep(backoff_seconds * (2 ** (attempt - 1)))
            continue
        break

    assert response is not None
    if not response.is_success:
        logger.error(
            "%s %s failed: status=%s body=%s",
            platform,
            operation,
            response.status_code,
            _body_excerpt(response),
        )
        raise on_error(response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        logger.error("%s %s returned non-JSON body: %s", platform, operation, _body_excerpt(response))
        raise on_error(response.status_code) from exc
    if not isinstance(payload, dict):
        raise on_error(response.status_code)
    return payload


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    platform: str,
    operation: str,
    params: Optional[Mapping[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    on_error: Callable[[int], Exception],
) -> Dict[str, Any]:
    """GET a JSON document, converting failures with ``on_error(status)``."""
    try:
        response = await client.get(url, params=dict(params or {}), headers=headers or {})
    except httpx.HTTPError as exc:
        logger.warning("%s %s transport error: %s", platform, operation, exc)
        raise ProviderUnavailableError(platform, operation) from exc

    if not response.is_success:
        logger.error(
            "%s %s failed: status=%s body=%s",
            platform,
            operation,
            response.status_code,
            _body_excerpt(response),
        )
        raise on_error(response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        logger.error("%s %s returned non-JSON body: %s", platform, operation, _body_excerpt(response))
        raise on_error(response.status_code) from exc
    if not isinstance(payload, dict):
        raise on_error(response.status_code)
    return payload
