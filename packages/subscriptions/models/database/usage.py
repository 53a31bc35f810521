"""
Database entity for usage records.
"""

from sqlalchemy import Column, String, Index, JSON, Integer
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UTCDateTime


class UsageRecordEntity(Base):
    """
    Usage record database entity.

    Append-only: rows are inserted by the usage meter and never updated.
    Totals are always recomputed from the log.
    """

    __tablename__ = "usage_records"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, nullable=False, index=True)

    metric = Column(String(64), nullable=False, index=True)

    # Signed: gauge metrics record +1 on start and -1 on finish
    quantity = Column(Integer, nullable=False)

    recorded_at = Column(UTCDateTime, nullable=False, index=True)

    # Billing period the record was attributed to when written
    period_start = Column(UTCDateTime, nullable=True)

    record_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_usage_tenant_metric_time", "tenant_id", "metric", "recorded_at"),
    )
