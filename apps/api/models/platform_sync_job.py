"""Platform sync job model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


SYNC_JOB_PENDING = "pending"
SYNC_JOB_RUNNING = "running"
SYNC_JOB_COMPLETED = "completed"
SYNC_JOB_FAILED = "failed"


class PlatformSyncJob(Base):
    """One attempt to refresh a linked account's data from its provider."""

    __tablename__ = "platform_sync_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    linked_account_id = Column(String, ForeignKey("linked_accounts.id"), nullable=False, index=True)
    sync_type = Column(String, nullable=False, default="full")
    status = Column(String, nullable=False, default=SYNC_JOB_PENDING, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    records_processed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    linked_account = relationship("LinkedAccount", back_populates="sync_jobs")
