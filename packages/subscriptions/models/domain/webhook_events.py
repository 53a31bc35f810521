"""
Domain models for the webhook idempotency ledger.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from packages.subscriptions.models.domain.enums import WebhookEventStatus


class WebhookEvent(BaseModel):
    """
    One provider notification as seen by the ledger.

    status only moves pending -> completed or pending -> failed. A failed or
    abandoned pending row may be re-claimed (back to pending) on redelivery;
    completed is terminal.
    """

    id: int
    provider_event_id: str
    event_type: str
    status: WebhookEventStatus
    attempts: int
    first_seen_at: datetime
    claimed_at: datetime
    completed_at: Optional[datetime] = None
    error_detail: Optional[str] = None

    class Config:
        from_attributes = True


class WebhookEventCreateModel(BaseModel):
    provider_event_id: str
    event_type: str
    status: WebhookEventStatus = WebhookEventStatus.PENDING
    attempts: int = 1
    first_seen_at: datetime
    claimed_at: datetime

    class Config:
        use_enum_values = True


class ClaimOutcome(str, Enum):
    """Result of trying to claim an event id in the ledger."""

    CLAIMED = "claimed"
    DUPLICATE = "duplicate"  # Already completed
    IN_FLIGHT = "in_flight"  # Another delivery is processing it


class EventDisposition(str, Enum):
    ACK = "ack"
    REJECT = "reject"


class EventReason(str, Enum):
    OK = "ok"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    IN_FLIGHT = "in_flight"
    BUSY = "busy"
    FAILED = "failed"


class EventResult(BaseModel):
    """Ack tells the transport to stop delivering; Reject asks for redelivery."""

    disposition: EventDisposition
    reason: EventReason
    event_id: str

    @classmethod
    def ack(cls, event_id: str, reason: EventReason = EventReason.OK) -> "EventResult":
        return cls(disposition=EventDisposition.ACK, reason=reason, event_id=event_id)

    @classmethod
    def reject(cls, event_id: str, reason: EventReason) -> "EventResult":
        return cls(
            disposition=EventDisposition.REJECT, reason=reason, event_id=event_id
        )

    @property
    def is_ack(self) -> bool:
        return self.disposition == EventDisposition.ACK
