"""Payment providers - authoritative subscription state and schedules."""

from packages.subscriptions.providers.payment.interface import (
    PaymentProviderInterface,
)
from packages.subscriptions.providers.payment.factory import get_payment_provider

__all__ = [
    "PaymentProviderInterface",
    "get_payment_provider",
]
