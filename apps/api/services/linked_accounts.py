"""
Persistence gateway for linked accounts, sync jobs and audience snapshots.

Functions here stage changes on the session; callers decide when to commit so
multi-row steps (account upsert + job + snapshot) land in one transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.linked_account import (
    SYNC_STATUS_CONNECTED,
    SYNC_STATUS_DISCONNECTED,
    LinkedAccount,
)
from models.platform_audience_metric import PlatformAudienceMetric
from models.platform_sync_job import PlatformSyncJob
from services.connectors.types import NormalizedProfile, TokenGrant
from services.crypto import encrypt_token


MAX_ERROR_LENGTH = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _insert_for(db: AsyncSession):
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    return sqlite_insert if dialect == "sqlite" else pg_insert


def token_expiry(grant: TokenGrant, now: datetime) -> Optional[datetime]:
    if not grant.expires_in:
        return None
    return datetime.fromtimestamp(now.timestamp() + grant.expires_in, tz=timezone.utc)


async def get_linked_account(
    db: AsyncSession,
    account_id: str,
    *,
    user_id: Optional[str] = None,
) -> Optional[LinkedAccount]:
    query = select(LinkedAccount).where(LinkedAccount.id == account_id)
    if user_id is not None:
        query = query.where(LinkedAccount.user_id == user_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def get_account_for_user_platform(
    db: AsyncSession,
    user_id: str,
    platform: str,
) -> Optional[LinkedAccount]:
    result = await db.execute(
        select(LinkedAccount)
        .where(LinkedAccount.user_id == user_id, LinkedAccount.platform == platform)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_linked_account(
    db: AsyncSession,
    *,
    user_id: str,
    platform: str,
    profile: NormalizedProfile,
    grant: TokenGrant,
    now: Optional[datetime] = None,
) -> LinkedAccount:
    """Insert or overwrite the (user, platform) account after a successful callback."""
    now = now or utcnow()
    values: Dict[str, Any] = {
        "username": profile.username,
        "platform_user_id": profile.platform_user_id,
        "profile_name": profile.display_name,
        "profile_image_url": profile.avatar_url,
        "profile_url": profile.profile_url,
        "bio": profile.bio,
        "followers": profile.followers,
        "following": profile.following,
        "engagement": profile.engagement,
        "access_token_encrypted": encrypt_token(grant.access_token),
        "refresh_token_encrypted": encrypt_token(grant.refresh_token),
        "token_expires_at": token_expiry(grant, now),
        "oauth_scope": grant.scope,
        "connected": True,
        "verified": True,
        "sync_status": SYNC_STATUS_CONNECTED,
        "last_sync": now,
        "error_count": 0,
        "last_error": None,
        "updated_at": now,
    }
    insert = _insert_for(db)
    statement = insert(LinkedAccount).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        platform=platform,
        created_at=now,
        **values,
    )
    statement = statement.on_conflict_do_update(
        index_elements=["user_id", "platform"],
        set_=values,
    )
    await db.execute(statement)

    account = await get_account_for_user_platform(db, user_id, platform)
    if account is None:
        raise RuntimeError(f"Upserted {platform} account for user {user_id} could not be reloaded")
    return account


async def create_sync_job(
    db: AsyncSession,
    linked_account_id: str,
    *,
    status: str,
    sync_type: str = "full",
    started_at: Optional[datetime] = None,
) -> PlatformSyncJob:
    job = PlatformSyncJob(
        id=str(uuid.uuid4()),
        linked_account_id=linked_account_id,
        sync_type=sync_type,
        status=status,
        started_at=started_at,
        records_processed=0,
    )
    db.add(job)
    await db.flush()
    return job


async def get_sync_job(db: AsyncSession, job_id: str) -> Optional[PlatformSyncJob]:
    result = await db.execute(
        select(PlatformSyncJob).where(PlatformSyncJob.id == job_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def finish_sync_job(
    job: PlatformSyncJob,
    *,
    status: str,
    records_processed: Optional[int] = None,
    error_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    job.status = status
    job.completed_at = now or utcnow()
    if records_processed is not None:
        job.records_processed = records_processed
    if error_message is not None:
        job.error_message = error_message[:MAX_ERROR_LENGTH]


async def upsert_audience_metric(
    db: AsyncSession,
    *,
    linked_account_id: str,
    profile: NormalizedProfile,
    now: Optional[datetime] = None,
) -> None:
    """Write today's follower snapshot, replacing an earlier one from the same day."""
    now = now or utcnow()
    values = {
        "followers_count": profile.followers,
        "following_count": profile.following,
        "engagement_rate": profile.engagement,
    }
    insert = _insert_for(db)
    statement = insert(PlatformAudienceMetric).values(
        id=str(uuid.uuid4()),
        linked_account_id=linked_account_id,
        metric_date=now.date(),
        created_at=now,
        **values,
    )
    statement = statement.on_conflict_do_update(
        index_elements=["linked_account_id", "metric_date"],
        set_=values,
    )
    await db.execute(statement)


def apply_token_refresh(account: LinkedAccount, grant: TokenGrant, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    account.access_token_encrypted = encrypt_token(grant.access_token)
    if grant.refresh_token:
        account.refresh_token_encrypted = encrypt_token(grant.refresh_token)
    account.token_expires_at = token_expiry(grant, now)
    if grant.scope:
        account.oauth_scope = grant.scope
    account.sync_status = SYNC_STATUS_CONNECTED
    account.error_count = 0
    account.last_error = None
    account.updated_at = now


def record_account_error(
    account: LinkedAccount,
    message: str,
    *,
    sync_status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Leave a durable health signal on the account after a provider failure."""
    account.error_count = int(account.error_count or 0) + 1
    account.last_error = message[:MAX_ERROR_LENGTH]
    if sync_status is not None:
        account.sync_status = sync_status
    account.updated_at = now or utcnow()


def apply_profile_sync(account: LinkedAccount, profile: NormalizedProfile, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    account.followers = profile.followers
    account.following = profile.following
    account.profile_name = profile.display_name
    account.profile_image_url = profile.avatar_url
    if profile.profile_url:
        account.profile_url = profile.profile_url
    if profile.bio is not None:
        account.bio = profile.bio
    if profile.engagement is not None:
        account.engagement = profile.engagement
    account.last_sync = now
    account.sync_status = SYNC_STATUS_CONNECTED
    account.updated_at = now


async def disconnect_linked_account(db: AsyncSession, *, account_id: str, user_id: str) -> int:
    """Clear tokens on the caller's own account; other users' rows are untouched."""
    result = await db.execute(
        update(LinkedAccount)
        .where(LinkedAccount.id == account_id, LinkedAccount.user_id == user_id)
        .values(
            connected=False,
            access_token_encrypted=None,
            refresh_token_encrypted=None,
            token_expires_at=None,
            sync_status=SYNC_STATUS_DISCONNECTED,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def serialize_account_status(account: LinkedAccount) -> Dict[str, Any]:
    return {
        "id": account.id,
        "platform": account.platform,
        "username": account.username,
        "connected": bool(account.connected),
        "sync_status": account.sync_status,
        "last_sync": isoformat(account.last_sync),
        "followers": account.followers,
        "engagement": account.engagement,
        "is_verified": bool(account.verified),
    }