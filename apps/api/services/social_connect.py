"""
Social account connection flows: authorization URL issuance, code exchange,
token refresh, disconnect, on-demand metric sync and status lookup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config import ProviderCredentials, get_provider_credentials, settings
from database import async_session_maker
from models.linked_account import LinkedAccount, SYNC_STATUS_TOKEN_EXPIRED
from models.platform_sync_job import (
    SYNC_JOB_COMPLETED,
    SYNC_JOB_FAILED,
    SYNC_JOB_PENDING,
    SYNC_JOB_RUNNING,
    PlatformSyncJob,
)
from services.connectors.http import build_provider_client
from services.connectors.providers import get_connector_provider
from services.connectors.registry import get_provider_config
from services.connectors.state import StateNonceStore, encode_state, verify_state
from services.connectors.types import (
    AccountNotConnectedError,
    AccountNotFoundError,
    ConnectorError,
    InvalidStateError,
    NoRefreshTokenError,
    NormalizedProfile,
)
from services.crypto import decrypt_token
from services.linked_accounts import (
    apply_profile_sync,
    apply_token_refresh,
    create_sync_job,
    disconnect_linked_account,
    finish_sync_job,
    get_account_for_user_platform,
    get_linked_account,
    get_sync_job,
    isoformat,
    record_account_error,
    serialize_account_status,
    upsert_audience_metric,
    upsert_linked_account,
    utcnow,
)
from services.sync_queue import enqueue_sync_job

logger = logging.getLogger(__name__)


def init_connection(
    *,
    platform: str,
    redirect_uri: str,
    user_id: str,
    credentials: ProviderCredentials,
) -> Dict[str, Any]:
    """Build the provider authorization URL. Nothing is persisted."""
    provider = get_connector_provider(platform, credentials)
    state = encode_state(user_id, provider.platform)
    request = provider.build_authorization_url(redirect_uri=redirect_uri, state=state)
    logger.info("Generated auth URL for %s user=%s", provider.platform, user_id)

    response: Dict[str, Any] = {
        "authorizationUrl": request.authorization_url,
        "authUrl": request.authorization_url,
        "state": request.state,
    }
    if request.code_verifier:
        # PKCE verifier is not stored server-side; the caller returns it on callback.
        response["codeVerifier"] = request.code_verifier
    return response


async def complete_callback(
    db: AsyncSession,
    client: httpx.AsyncClient,
    *,
    platform: str,
    code: str,
    redirect_uri: str,
    state: str,
    credentials: ProviderCredentials,
    nonce_store: StateNonceStore,
    code_verifier: Optional[str] = None,
) -> Dict[str, Any]:
    """Exchange the authorization code and link the account to the state's user."""
    oauth_state = await verify_state(
        state,
        nonce_store=nonce_store,
        ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS,
    )
    provider = get_connector_provider(platform, credentials)
    if oauth_state.platform != provider.platform:
        logger.warning(
            "State issued for %s presented on %s callback (user=%s)",
            oauth_state.platform,
            provider.platform,
            oauth_state.user_id,
        )
        raise InvalidStateError()

    grant = await provider.exchange_code(
        client,
        code=code,
        redirect_uri=redirect_uri,
        code_verifier=code_verifier,
    )
    profile = await provider.fetch_profile(client, access_token=grant.access_token)
    logger.info("Got profile for %s: %s", provider.platform, profile.username)

    now = utcnow()
    account = await upsert_linked_account(
        db,
        user_id=oauth_state.user_id,
        platform=provider.platform,
        profile=profile,
        grant=grant,
        now=now,
    )
    job = await create_sync_job(db, account.id, status=SYNC_JOB_PENDING)
    await upsert_audience_metric(db, linked_account_id=account.id, profile=profile, now=now)
    await db.commit()

    if settings.SYNC_QUEUE_ENABLED:
        try:
            enqueue_sync_job(job.id)
        except Exception as exc:
            logger.warning("Could not enqueue sync job %s; it stays pending: %s", job.id, exc)

    return {
        "success": True,
        "account": {
            "id": account.id,
            "platform": provider.platform,
            "username": profile.username,
            "displayName": profile.display_name,
            "avatarUrl": profile.avatar_url,
            "followers": profile.followers,
        },
    }


async def _load_owned_account(db: AsyncSession, account_id: str, user_id: str) -> LinkedAccount:
    account = await get_linked_account(db, account_id, user_id=user_id)
    if account is None:
        raise AccountNotFoundError()
    return account


async def refresh_connection(
    db: AsyncSession,
    client: httpx.AsyncClient,
    *,
    account_id: str,
    user_id: str,
    credentials: ProviderCredentials,
) -> Dict[str, Any]:
    """Renew the access token; failures degrade the account's health fields."""
    account = await _load_owned_account(db, account_id, user_id)
    refresh_token = decrypt_token(account.refresh_token_encrypted)
    if not refresh_token:
        raise NoRefreshTokenError()

    provider = get_connector_provider(account.platform, credentials)
    try:
        grant = await provider.refresh_access_token(client, refresh_token=refresh_token)
    except ConnectorError as exc:
        logger.warning("Token refresh failed for account %s (%s): %s", account.id, account.platform, exc.message)
        record_account_error(account, exc.message, sync_status=SYNC_STATUS_TOKEN_EXPIRED)
        await db.commit()
        raise

    apply_token_refresh(account, grant)
    await db.commit()
    logger.info("Refreshed token for account %s (%s)", account.id, account.platform)
    return {"success": True}


async def disconnect_connection(db: AsyncSession, *, account_id: str, user_id: str) -> Dict[str, Any]:
    rows = await disconnect_linked_account(db, account_id=account_id, user_id=user_id)
    await db.commit()
    logger.info("Disconnect account=%s user=%s rows=%s", account_id, user_id, rows)
    return {"success": True}


async def _fetch_and_apply_profile(
    db: AsyncSession,
    client: httpx.AsyncClient,
    *,
    account: LinkedAccount,
    job: PlatformSyncJob,
    credentials: ProviderCredentials,
) -> NormalizedProfile:
    """
    Run one sync attempt for a job already marked running.

    The account row is only written after the provider answered, so a failed
    attempt leaves profile and follower fields as they were.
    """
    try:
        access_token = decrypt_token(account.access_token_encrypted)
        if not access_token:
            raise AccountNotConnectedError()
        provider = get_connector_provider(account.platform, credentials)
        profile = await provider.fetch_profile(client, access_token=access_token)
    except Exception as exc:
        message = exc.message if isinstance(exc, ConnectorError) else str(exc) or exc.__class__.__name__
        logger.warning("Sync job %s for account %s failed: %s", job.id, account.id, message)
        finish_sync_job(job, status=SYNC_JOB_FAILED, error_message=message)
        record_account_error(account, message)
        await db.commit()
        raise

    now = utcnow()
    apply_profile_sync(account, profile, now)
    await upsert_audience_metric(db, linked_account_id=account.id, profile=profile, now=now)
    finish_sync_job(job, status=SYNC_JOB_COMPLETED, records_processed=1, now=now)
    await db.commit()
    return profile


async def sync_connection(
    db: AsyncSession,
    client: httpx.AsyncClient,
    *,
    account_id: str,
    user_id: str,
    credentials: ProviderCredentials,
) -> Dict[str, Any]:
    """Re-fetch the provider profile and snapshot today's audience metrics."""
    account = await _load_owned_account(db, account_id, user_id)
    if not account.access_token_encrypted:
        raise AccountNotConnectedError()

    job = await create_sync_job(db, account.id, status=SYNC_JOB_RUNNING, started_at=utcnow())
    await db.commit()

    profile = await _fetch_and_apply_profile(db, client, account=account, job=job, credentials=credentials)
    return {
        "success": True,
        "followers": profile.followers,
        "lastSync": isoformat(account.last_sync),
    }


async def get_connection_status(db: AsyncSession, *, user_id: str, platform: str) -> Dict[str, Any]:
    config = get_provider_config(platform)
    account = await get_account_for_user_platform(db, user_id, config.platform)
    return {
        "connected": bool(account is not None and account.connected),
        "account": serialize_account_status(account) if account is not None else None,
    }


async def process_sync_job_async(
    job_id: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    credentials: Optional[ProviderCredentials] = None,
) -> Optional[str]:
    """Worker pipeline for a queued sync job. Returns the job's final status."""
    credentials = credentials or get_provider_credentials()
    async with async_session_maker() as db:
        job = await get_sync_job(db, job_id)
        if job is None:
            logger.warning("Sync job %s not found", job_id)
            return None
        if job.status != SYNC_JOB_PENDING:
            logger.info("Sync job %s already %s; skipping", job_id, job.status)
            return job.status

        account = await get_linked_account(db, job.linked_account_id)
        if account is None:
            finish_sync_job(job, status=SYNC_JOB_FAILED, error_message="Account not found")
            await db.commit()
            return job.status

        job.status = SYNC_JOB_RUNNING
        job.started_at = utcnow()
        await db.commit()

        owns_client = client is None
        http_client = client or build_provider_client()
        try:
            await _fetch_and_apply_profile(db, http_client, account=account, job=job, credentials=credentials)
        except Exception:
            logger.exception("Sync job %s failed", job_id)
        finally:
            if owns_client:
                await http_client.aclose()
        return job.status


def process_sync_job(job_id: str) -> None:
    """RQ worker entrypoint for platform sync jobs."""
    asyncio.run(process_sync_job_async(job_id))
