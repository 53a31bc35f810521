from datetime import datetime, timedelta, timezone

import pytest

from packages.subscriptions.models.domain.enums import WebhookEventStatus
from packages.subscriptions.repositories.webhook_event_repository import (
    WebhookEventRepository,
)

NOW = datetime.now(timezone.utc).replace(microsecond=0)


class TestWebhookEventRepository:
    """Test the idempotency ledger transitions."""

    @pytest.fixture
    def repo(self):
        return WebhookEventRepository()

    @pytest.mark.asyncio
    async def test_insert_pending_once(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)
        again = await repo.insert_pending("evt_1", "invoice.paid", NOW)

        assert row.status == WebhookEventStatus.PENDING
        assert row.attempts == 1
        assert again is None

    @pytest.mark.asyncio
    async def test_mark_completed(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)

        await repo.mark_completed(row.id, NOW + timedelta(seconds=1))

        stored = await repo.get_by_provider_event_id("evt_1")
        assert stored.status == WebhookEventStatus.COMPLETED
        assert stored.completed_at == NOW + timedelta(seconds=1)

    @pytest.mark.asyncio
    async def test_failed_row_can_be_reclaimed_once(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)
        await repo.mark_failed(row.id, "ProviderError: down")

        first = await repo.reclaim(row.id, expected_attempts=1, now=NOW)
        second = await repo.reclaim(row.id, expected_attempts=1, now=NOW)

        assert first is True
        assert second is False
        stored = await repo.get_by_provider_event_id("evt_1")
        assert stored.status == WebhookEventStatus.PENDING
        assert stored.attempts == 2
        assert stored.error_detail is None

    @pytest.mark.asyncio
    async def test_completed_row_is_never_reclaimed(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)
        await repo.mark_completed(row.id, NOW)

        assert await repo.reclaim(row.id, expected_attempts=1, now=NOW) is False

    @pytest.mark.asyncio
    async def test_completed_row_cannot_be_marked_failed(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)
        await repo.mark_completed(row.id, NOW)

        await repo.mark_failed(row.id, "late failure")

        stored = await repo.get_by_provider_event_id("evt_1")
        assert stored.status == WebhookEventStatus.COMPLETED
        assert stored.error_detail is None

    @pytest.mark.asyncio
    async def test_error_detail_truncated(self, repo):
        row = await repo.insert_pending("evt_1", "invoice.paid", NOW)

        await repo.mark_failed(row.id, "x" * 5000)

        stored = await repo.get_by_provider_event_id("evt_1")
        assert len(stored.error_detail) == 2000
