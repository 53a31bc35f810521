"""
Database entity for subscriptions.
"""

from sqlalchemy import Boolean, Column, Index, Integer, String
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UTCDateTime


class SubscriptionEntity(Base):
    """
    Tenant subscription database entity.

    One row per tenant. The pending ScheduledChange is embedded in the
    scheduled_* columns (all null when there is none).
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, nullable=False, unique=True, index=True)

    # Plan and lifecycle
    plan_id = Column(String(64), nullable=False, index=True)
    interval = Column(String(16), nullable=False)  # month, year
    status = Column(String(32), nullable=False, index=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    # External platform IDs (null until the provider confirms)
    provider_subscription_id = Column(
        String(255), nullable=True, unique=True, index=True
    )
    provider_customer_id = Column(String(255), nullable=True)
    payment_provider = Column(String(50), nullable=False, server_default="stripe")

    # Billing cycle
    current_period_start = Column(UTCDateTime, nullable=False)
    current_period_end = Column(UTCDateTime, nullable=False)

    # Embedded scheduled change
    scheduled_plan_id = Column(String(64), nullable=True)
    scheduled_interval = Column(String(16), nullable=True)
    scheduled_effective_at = Column(UTCDateTime, nullable=True)
    scheduled_origin = Column(String(32), nullable=True)
    scheduled_schedule_id = Column(String(255), nullable=True)

    # Concurrency control and ordering
    version = Column(Integer, nullable=False, default=1)
    last_event_at = Column(UTCDateTime, nullable=True)
    ended_subscription_id = Column(String(255), nullable=True, index=True)
    released_schedule_id = Column(String(255), nullable=True)
    schedule_released_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_subscription_status_plan", "status", "plan_id"),
        Index("idx_subscription_period_end", "current_period_end"),
    )
