"""
Reconciliation against the payment provider.

The provider is authoritative for status, periods, and the cancel flag. A
status the local state machine cannot reach from where it is is not
overwritten: it is surfaced as drift for an operator.
"""

from typing import Optional

from common.core.config import settings
from common.core.exceptions import ConflictError, DriftError, NotFoundError
from common.core.otel_axiom_exporter import get_logger, log_span_event, trace_span
from common.providers.caching.factory import get_cache_provider
from packages.subscriptions.cache_keys import subscription_by_tenant_key
from packages.subscriptions.models.domain.enums import ScheduledChangeOrigin
from packages.subscriptions.models.domain.reconciliation import (
    ReconciliationResult,
    SweepReport,
)
from packages.subscriptions.providers.payment.factory import get_payment_provider
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.subscription_lock import subscription_lock

logger = get_logger(__name__)


class ReconciliationService:
    """Copies provider-authoritative fields onto local subscriptions."""

    def __init__(self):
        self.subscription_repo = SubscriptionRepository()
        self.payment_provider = get_payment_provider()

    @trace_span
    async def reconcile(self, subscription_id: int) -> ReconciliationResult:
        """
        Reconcile one subscription.

        Raises:
            NotFoundError: no local subscription with this id
            DriftError: the provider lost the subscription, or reports a
                status the local state cannot reach
            ConflictError: tenant busy, or the row changed mid-reconcile
        """
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None:
            raise NotFoundError(
                "Subscription not found", context={"subscription_id": subscription_id}
            )
        if not subscription.is_provider_linked():
            return ReconciliationResult(subscription_id=subscription_id, changed=False)

        async with subscription_lock(subscription.tenant_id):
            current = await self.subscription_repo.get(subscription_id)
            provider = await self.payment_provider.retrieve_subscription(
                current.provider_subscription_id
            )
            if provider is None:
                raise DriftError(
                    "Payment provider no longer knows this subscription",
                    context={
                        "subscription_id": subscription_id,
                        "provider_subscription_id": current.provider_subscription_id,
                    },
                )

            update = {}
            if provider.status != current.status:
                if not current.status.can_reach(provider.status):
                    raise DriftError(
                        f"Provider status {provider.status.value} is unreachable from {current.status.value}",
                        context={
                            "subscription_id": subscription_id,
                            "local_status": current.status.value,
                            "provider_status": provider.status.value,
                        },
                    )
                update["status"] = provider.status

            if provider.cancel_at_period_end != current.cancel_at_period_end:
                update["cancel_at_period_end"] = provider.cancel_at_period_end
            if provider.current_period_start != current.current_period_start:
                update["current_period_start"] = provider.current_period_start
            if provider.current_period_end != current.current_period_end:
                update["current_period_end"] = provider.current_period_end

            change = current.scheduled_change
            if (
                change is not None
                and change.origin == ScheduledChangeOrigin.CANCEL_AT_PERIOD_END
                and not provider.cancel_at_period_end
            ):
                update["scheduled_change"] = None

            if not update:
                return ReconciliationResult(
                    subscription_id=subscription_id, changed=False
                )

            written = await self.subscription_repo.compare_and_swap(
                current.id, current.version, current.state().model_copy(update=update)
            )
            if written is None:
                raise ConflictError(
                    "Subscription changed during reconciliation",
                    context={"subscription_id": subscription_id},
                )

        fields = sorted(update)
        await get_cache_provider().delete(subscription_by_tenant_key(current.tenant_id))
        log_span_event(
            "Subscription reconciled",
            {"subscription_id": subscription_id, "fields": ",".join(fields)},
        )
        logger.info(
            f"Reconciled subscription {subscription_id}: {', '.join(fields)}",
            extra={"subscription_id": subscription_id, "tenant_id": current.tenant_id},
        )
        return ReconciliationResult(
            subscription_id=subscription_id, changed=True, fields=fields
        )

    @trace_span
    async def reconcile_tenant(self, tenant_id: int) -> ReconciliationResult:
        subscription = await self.subscription_repo.get_by_tenant_id(tenant_id)
        if subscription is None:
            raise NotFoundError(
                "No subscription for tenant", context={"tenant_id": tenant_id}
            )
        return await self.reconcile(subscription.id)

    @trace_span
    async def reconcile_all(self, batch_size: Optional[int] = None) -> SweepReport:
        """
        Reconcile every provider-linked, non-terminal subscription.

        One subscription's failure never stops the sweep.
        """
        batch_size = batch_size or settings.reconciliation_batch_size
        report = SweepReport()
        after_id = 0

        while True:
            batch = await self.subscription_repo.list_reconcilable(
                after_id=after_id, limit=batch_size
            )
            if not batch:
                break

            for subscription in batch:
                report.checked += 1
                try:
                    result = await self.reconcile(subscription.id)
                    if result.changed:
                        report.changed.append(subscription.id)
                except DriftError as e:
                    logger.warning(
                        f"Drift on subscription {subscription.id}: {e.message}",
                        extra={"subscription_id": subscription.id, **e.context},
                    )
                    report.drifted.append(subscription.id)
                except Exception as e:
                    logger.error(
                        f"Failed to reconcile subscription {subscription.id}: {str(e)}",
                        extra={"subscription_id": subscription.id, "error": str(e)},
                    )
                    report.failed.append(subscription.id)

            after_id = batch[-1].id
            if len(batch) < batch_size:
                break

        logger.info(
            f"Reconciliation sweep checked {report.checked} subscriptions",
            extra={
                "changed": len(report.changed),
                "drifted": len(report.drifted),
                "failed": len(report.failed),
            },
        )
        return report
