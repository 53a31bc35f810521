"""Domain models for reconciliation."""

from pydantic import BaseModel, Field


class ReconciliationResult(BaseModel):
    """Fields copied from the provider onto the local subscription."""

    subscription_id: int
    changed: bool
    fields: list[str] = Field(default_factory=list)


class SweepReport(BaseModel):
    """Outcome of reconciling every provider-linked subscription."""

    checked: int = 0
    changed: list[int] = Field(default_factory=list)
    drifted: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)
