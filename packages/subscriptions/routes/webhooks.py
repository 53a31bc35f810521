"""
Webhook endpoints for payment provider events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from common.providers.rate_limiter.limiter import limiter
from packages.subscriptions.webhooks.stripe_webhook import handle_stripe_webhook

router = APIRouter()


@router.post("/webhooks/stripe")
@limiter.exempt
async def stripe_webhook(request: Request) -> JSONResponse:
    """
    Receive webhook events from Stripe payment platform.

    Exempt from rate limiting: Stripe delivers bursts from a small set of
    addresses, and the signature is validated internally.
    """
    return await handle_stripe_webhook(request)
