"""
Factory for getting payment provider instance.
"""

from typing import Optional

from packages.subscriptions.providers.payment.interface import (
    PaymentProviderInterface,
)
from packages.subscriptions.providers.payment.stripe_payment import (
    StripePaymentProvider,
)

# Global instance
_payment_provider: Optional[PaymentProviderInterface] = None


def get_payment_provider() -> PaymentProviderInterface:
    """
    Get payment provider instance.

    Currently only Stripe is supported, but this abstraction allows
    swapping to another billing backend in the future.

    Returns:
        PaymentProviderInterface: Configured payment provider
    """
    global _payment_provider

    if _payment_provider is None:
        _payment_provider = StripePaymentProvider()

    return _payment_provider
