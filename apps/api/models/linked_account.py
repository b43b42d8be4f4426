"""Linked social account model."""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


SYNC_STATUS_CONNECTED = "connected"
SYNC_STATUS_DISCONNECTED = "disconnected"
SYNC_STATUS_TOKEN_EXPIRED = "token_expired"


class LinkedAccount(Base):
    """One user's OAuth connection to one social platform."""

    __tablename__ = "linked_accounts"
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_linked_accounts_user_platform"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False)  # meta, tiktok, twitter, linkedin
    username = Column(String, nullable=True)
    platform_user_id = Column(String, nullable=True, index=True)
    profile_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    profile_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    followers = Column(Integer, nullable=True)
    following = Column(Integer, nullable=True)
    engagement = Column(Float, nullable=True)
    access_token_encrypted = Column(Text, nullable=True)
    refresh_token_encrypted = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    oauth_scope = Column(String, nullable=True)
    connected = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)
    sync_status = Column(String, nullable=False, default=SYNC_STATUS_DISCONNECTED)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    error_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    sync_jobs = relationship("PlatformSyncJob", back_populates="linked_account", cascade="all, delete-orphan")
    audience_metrics = relationship(
        "PlatformAudienceMetric",
        back_populates="linked_account",
        cascade="all, delete-orphan",
    )
