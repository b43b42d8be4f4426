"""Daily audience metric snapshot model."""

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class PlatformAudienceMetric(Base):
    """Follower/engagement snapshot for a linked account on one calendar day."""

    __tablename__ = "platform_audience_metrics"
    __table_args__ = (
        UniqueConstraint("linked_account_id", "metric_date", name="uq_platform_audience_metrics_account_date"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    linked_account_id = Column(String, ForeignKey("linked_accounts.id"), nullable=False, index=True)
    metric_date = Column(Date, nullable=False)
    followers_count = Column(Integer, nullable=True)
    following_count = Column(Integer, nullable=True)
    engagement_rate = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    linked_account = relationship("LinkedAccount", back_populates="audience_metrics")
