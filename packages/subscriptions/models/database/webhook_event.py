"""
Database entity for the webhook idempotency ledger.
"""

from sqlalchemy import Column, String, Index, Integer, Text

from common.db.base import Base, BigIntegerType, UTCDateTime


class WebhookEventEntity(Base):
    """
    One row per provider event id.

    The unique constraint on provider_event_id makes check-and-insert atomic.
    """

    __tablename__ = "webhook_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    provider_event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(128), nullable=False)

    status = Column(String(32), nullable=False, index=True)  # pending, completed, failed
    attempts = Column(Integer, nullable=False, default=1)

    first_seen_at = Column(UTCDateTime, nullable=False)
    claimed_at = Column(UTCDateTime, nullable=False)
    completed_at = Column(UTCDateTime, nullable=True)
    error_detail = Column(Text, nullable=True)

    __table_args__ = (Index("idx_webhook_event_status_claimed", "status", "claimed_at"),)
